"""
Pytest Configuration and Fixtures.

An in-memory transport lets the tests drive open results, cloud-to-device
messages, errors, disconnects and send completions by hand.
"""
import os

# Keep the environment out of the configuration under test
os.environ.setdefault("STATUS_API_ENABLED", "false")

import random
from datetime import datetime

import pytest

from fleetsim.devicesimulation.application.services import DeviceConnection, FleetSettings
from fleetsim.devicesimulation.domain.model.aggregates import DeviceIdentity, DeviceRoster
from fleetsim.shared.infrastructure.mqtt import Transport, TransportHandle, TransportProtocol

TEST_KEY = "c2ltdWxhdGVkLWRldmljZS1rZXktMTAwMA=="
TEST_HOST = "test-hub.azure-devices.net"


class FakeHandle(TransportHandle):
    """Transport handle whose results are completed by the test"""

    def __init__(self, credential, protocol):
        super().__init__()
        self.credential = credential
        self.protocol = protocol
        self.open_callback = None
        self.sent = []
        self.acknowledged = []
        self.closed = False

    def open(self, callback):
        self.open_callback = callback

    def send(self, payload, properties, callback):
        self.sent.append((payload, properties, callback))

    def acknowledge(self, message, callback):
        self.acknowledged.append(message)
        callback(None, "MessageCompleted")

    def close(self):
        self.closed = True

    # Test helpers

    def complete_open(self, error=None):
        self.open_callback(error)

    def complete_send(self, index=-1, error=None, result="MessageEnqueued"):
        _, _, callback = self.sent[index]
        callback(error, None if error else result)


class FakeTransport(Transport):
    """Records every handle it creates"""

    def __init__(self):
        self.handles = []

    def create_handle(self, credential, protocol):
        handle = FakeHandle(credential, protocol)
        self.handles.append(handle)
        return handle

    @property
    def last_handle(self):
        return self.handles[-1]


def make_identity(device_id="device1000", model="temperature", message_schema=None,
                  protocol=TransportProtocol.MQTT):
    return DeviceIdentity.from_access_key(
        host_name=TEST_HOST,
        device_id=device_id,
        access_key=TEST_KEY,
        protocol=protocol,
        model=model,
        message_schema=message_schema
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def identity():
    return make_identity()


@pytest.fixture
def connection(identity, transport):
    """Connection that never reconnects on a timer"""
    conn = DeviceConnection(identity, transport, FleetSettings())
    yield conn
    conn.disconnect()


@pytest.fixture
def connected(connection, transport):
    """Connection whose first handle has opened successfully"""
    connection.connect()
    transport.last_handle.complete_open()
    return connection


@pytest.fixture
def roster():
    return DeviceRoster(
        hub_name="test-hub",
        frequency_ms=1000,
        randomness_ms=10,
        devices=[
            make_identity("device1000", "temperature"),
            make_identity("device1001", "humidity"),
            make_identity("device1002", "random", message_schema="temperature;v1"),
        ]
    )


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def noon():
    return datetime(2025, 1, 15, 12, 0, 0)
