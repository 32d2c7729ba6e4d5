import json
import logging
from pathlib import Path
from typing import Optional

from fleetsim.config import HubConfig, SimulationConfig
from fleetsim.devicesimulation.domain.model.aggregates import DeviceIdentity, DeviceRoster
from fleetsim.shared.infrastructure.mqtt import TransportProtocol

logger = logging.getLogger(__name__)


class RosterError(Exception):
    """Roster file is missing or cannot be used"""


def _get_ci(data: dict, key: str):
    """Case-insensitive dict lookup"""
    if not isinstance(data, dict):
        return None

    for candidate, value in data.items():
        if candidate.lower() == key.lower():
            return value

    return None


class DeviceRosterLoader:
    """
    Loads the device roster from JSON

    File format:
    {
        "hubName": "my-iothub",
        "frequency": 1000,
        "randomness": 10,
        "protocol": "mqtt",
        "devices": [
            {"deviceId": "device1000", "accessKey": "...", "model": "humidity"},
            {"deviceId": "device1001",
             "authentication": {"symmetricKey": {"primaryKey": "..."}}}
        ]
    }

    Everything but the device list falls back to the environment settings.
    """

    def __init__(
            self,
            roster_file: str,
            hub_config=HubConfig,
            simulation_config=SimulationConfig
    ):
        """
        Initialize loader

        Args:
            roster_file: Path to the roster JSON file
        """
        self.roster_file = Path(roster_file)
        self.hub_config = hub_config
        self.simulation_config = simulation_config

    def load(self) -> DeviceRoster:
        """
        Load the roster

        Invalid device entries are logged and skipped.

        Returns:
            DeviceRoster

        Raises:
            RosterError: If the file is missing, not valid JSON or has no usable settings
        """
        if not self.roster_file.exists():
            raise RosterError(f"Roster file not found: {self.roster_file}")

        logger.info(f"Loading device roster from: {self.roster_file}")

        try:
            with open(self.roster_file, 'r', encoding='utf-8') as f:
                roster_data = json.load(f)
        except json.JSONDecodeError as e:
            raise RosterError(f"Invalid JSON in roster file: {e}") from e

        return self.parse(roster_data)

    def parse(self, roster_data: dict) -> DeviceRoster:
        """Build a roster from already decoded JSON"""
        if not isinstance(roster_data, dict):
            raise RosterError("Roster must be a JSON object")

        hub_name = roster_data.get('hubName') or self.hub_config.HUB_NAME
        host_name = self.hub_config.get_host_name(hub_name)

        try:
            default_protocol = TransportProtocol.from_value(
                roster_data.get('protocol') or self.hub_config.DEFAULT_PROTOCOL
            )
            frequency = int(roster_data.get('frequency', self.simulation_config.PUBLISH_FREQUENCY_MS))
            randomness = int(roster_data.get('randomness', self.simulation_config.PUBLISH_RANDOMNESS_MS))
        except (TypeError, ValueError) as e:
            raise RosterError(f"Invalid roster settings: {e}") from e

        devices = []
        for device_data in roster_data.get('devices', []):
            identity = self._parse_device(device_data, host_name, default_protocol)
            if identity is not None:
                devices.append(identity)

        try:
            roster = DeviceRoster(
                hub_name=hub_name,
                frequency_ms=frequency,
                randomness_ms=randomness,
                devices=devices
            )
        except ValueError as e:
            raise RosterError(str(e)) from e

        logger.info(f"Loaded {len(roster)} device(s) for hub {hub_name}")
        for identity in roster.devices:
            logger.info(f"  - {identity}")

        return roster

    def _parse_device(
            self,
            device_data: dict,
            host_name: str,
            default_protocol: TransportProtocol
    ) -> Optional[DeviceIdentity]:
        if not isinstance(device_data, dict):
            logger.warning(f"Invalid device entry (not an object): {device_data!r}")
            return None

        device_id = _get_ci(device_data, 'deviceId')
        access_key = _get_ci(device_data, 'accessKey') or _get_ci(
            _get_ci(_get_ci(device_data, 'authentication'), 'symmetricKey'),
            'primaryKey'
        )

        if not device_id or not access_key:
            logger.warning(f"Invalid device entry (deviceId and key required): {device_id or device_data}")
            return None

        try:
            protocol = TransportProtocol.from_value(
                device_data.get('protocol') or default_protocol
            )
            return DeviceIdentity.from_access_key(
                host_name=host_name,
                device_id=device_id,
                access_key=access_key,
                protocol=protocol,
                model=device_data.get('model') or self.simulation_config.DEFAULT_MODEL,
                message_schema=device_data.get('messageSchema')
            )
        except ValueError as e:
            logger.warning(f"Invalid device entry {device_id}: {e}")
            return None
