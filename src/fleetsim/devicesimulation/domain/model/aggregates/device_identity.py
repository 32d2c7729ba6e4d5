from dataclasses import dataclass
from typing import Optional

from fleetsim.shared.infrastructure.mqtt import TransportProtocol, build_connection_string


@dataclass(frozen=True)
class DeviceIdentity:
    """
    Device identity - immutable after construction

    The credential is opaque to the simulator; only the transport reads it.
    """
    device_id: str
    credential: str
    protocol: TransportProtocol = TransportProtocol.MQTT
    model: str = "temperature"
    message_schema: Optional[str] = None

    def __post_init__(self):
        """Validations after initialization"""
        if not self.device_id:
            raise ValueError("device_id cannot be empty")

        if not self.credential:
            raise ValueError(f"credential cannot be empty (device {self.device_id})")

    @property
    def name(self) -> str:
        return self.device_id

    @staticmethod
    def from_access_key(
            host_name: str,
            device_id: str,
            access_key: str,
            protocol: TransportProtocol = TransportProtocol.MQTT,
            model: str = "temperature",
            message_schema: Optional[str] = None
    ) -> 'DeviceIdentity':
        """
        Factory method: Creates DeviceIdentity from hub host and access key
        """
        return DeviceIdentity(
            device_id=device_id,
            credential=build_connection_string(host_name, device_id, access_key),
            protocol=protocol,
            model=model,
            message_schema=message_schema or None
        )

    def __repr__(self) -> str:
        # Never print the credential
        return (
            f"DeviceIdentity({self.device_id!r}, protocol={self.protocol.value}, "
            f"model={self.model!r})"
        )
