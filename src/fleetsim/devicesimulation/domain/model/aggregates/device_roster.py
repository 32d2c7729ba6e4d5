from dataclasses import dataclass, field
from typing import List

from .device_identity import DeviceIdentity


@dataclass
class DeviceRoster:
    """
    Devices to simulate against one hub

    frequency_ms is the base publish interval; each device gets its own
    interval jittered by up to randomness_ms / 2 in both directions.
    """
    hub_name: str
    frequency_ms: int
    randomness_ms: int
    devices: List[DeviceIdentity] = field(default_factory=list)

    def __post_init__(self):
        if self.frequency_ms <= 0:
            raise ValueError(f"frequency_ms must be positive, got {self.frequency_ms}")

        if self.randomness_ms < 0:
            raise ValueError(f"randomness_ms cannot be negative, got {self.randomness_ms}")

    def __len__(self) -> int:
        return len(self.devices)
