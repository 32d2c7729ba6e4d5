"""
Device Roster Loader Tests.
"""
import json
from pathlib import Path

import pytest

from fleetsim.config import HubConfig, SimulationConfig
from fleetsim.devicesimulation.infrastructure.roster import DeviceRosterLoader, RosterError
from fleetsim.shared.infrastructure.mqtt import ConnectionString, TransportProtocol

from conftest import TEST_KEY

SAMPLE_ROSTER = Path(__file__).resolve().parent.parent / "config" / "devices.json"


@pytest.fixture
def write_roster(tmp_path):
    def _write(data):
        path = tmp_path / "devices.json"
        path.write_text(json.dumps(data), encoding='utf-8')
        return DeviceRosterLoader(str(path))
    return _write


class TestLoad:

    def test_full_roster(self, write_roster):
        loader = write_roster({
            "hubName": "fleet-hub",
            "frequency": 2000,
            "randomness": 50,
            "protocol": "mqtt_ws",
            "devices": [
                {"deviceId": "device1000", "accessKey": TEST_KEY, "model": "humidity",
                 "messageSchema": "humidity;v1"},
                {"deviceId": "device1001",
                 "authentication": {"symmetricKey": {"primaryKey": TEST_KEY}},
                 "protocol": "mqtt"}
            ]
        })

        roster = loader.load()

        assert roster.hub_name == "fleet-hub"
        assert roster.frequency_ms == 2000
        assert roster.randomness_ms == 50
        first, second = roster.devices
        assert first.protocol is TransportProtocol.MQTT_WS
        assert first.model == "humidity"
        assert first.message_schema == "humidity;v1"
        assert second.protocol is TransportProtocol.MQTT
        assert second.model == SimulationConfig.DEFAULT_MODEL

    def test_credential_is_a_connection_string(self, write_roster):
        loader = write_roster({
            "hubName": "fleet-hub",
            "devices": [{"deviceId": "device1000", "accessKey": TEST_KEY}]
        })

        identity = loader.load().devices[0]

        connection = ConnectionString.parse(identity.credential)
        assert connection.host_name == HubConfig.get_host_name("fleet-hub")
        assert connection.device_id == "device1000"
        assert connection.shared_access_key == TEST_KEY

    def test_defaults_come_from_config(self, write_roster):
        loader = write_roster({"devices": [{"deviceId": "d", "accessKey": TEST_KEY}]})

        roster = loader.load()

        assert roster.hub_name == HubConfig.HUB_NAME
        assert roster.frequency_ms == SimulationConfig.PUBLISH_FREQUENCY_MS
        assert roster.randomness_ms == SimulationConfig.PUBLISH_RANDOMNESS_MS

    def test_keys_are_case_insensitive(self, write_roster):
        loader = write_roster({
            "devices": [{"DeviceId": "d", "Authentication": {"SymmetricKey": {"PrimaryKey": TEST_KEY}}}]
        })

        assert loader.load().devices[0].device_id == "d"

    def test_invalid_devices_are_skipped(self, write_roster):
        loader = write_roster({
            "devices": [
                {"deviceId": "no-key"},
                {"accessKey": TEST_KEY},
                "device1000",
                {"deviceId": "bad-protocol", "accessKey": TEST_KEY, "protocol": "amqp"},
                {"deviceId": "ok", "accessKey": TEST_KEY}
            ]
        })

        roster = loader.load()

        assert [identity.device_id for identity in roster.devices] == ["ok"]

    def test_empty_device_list(self, write_roster):
        assert len(write_roster({"hubName": "h"}).load()) == 0

    def test_sample_roster_loads(self):
        roster = DeviceRosterLoader(str(SAMPLE_ROSTER)).load()

        assert [identity.device_id for identity in roster.devices] == [
            "device1000", "device1001", "device1002", "device1003", "device1004"
        ]
        assert roster.devices[4].protocol is TransportProtocol.MQTT_WS


class TestErrors:

    def test_missing_file(self, tmp_path):
        with pytest.raises(RosterError, match="not found"):
            DeviceRosterLoader(str(tmp_path / "missing.json")).load()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "devices.json"
        path.write_text("{not json", encoding='utf-8')

        with pytest.raises(RosterError, match="Invalid JSON"):
            DeviceRosterLoader(str(path)).load()

    def test_roster_must_be_an_object(self, write_roster):
        with pytest.raises(RosterError):
            write_roster([]).load()

    @pytest.mark.parametrize("settings", [
        {"frequency": 0},
        {"frequency": "often"},
        {"randomness": -1},
        {"protocol": "amqp"},
    ])
    def test_invalid_settings(self, write_roster, settings):
        with pytest.raises(RosterError):
            write_roster(settings).load()
