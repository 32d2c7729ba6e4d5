"""
Publish Loop Tests.
"""
import json
import threading
import time
from unittest.mock import Mock

import pytest

from fleetsim.devicesimulation.application.services import DeviceConnection
from fleetsim.devicesimulation.application.workers import PublishLoop
from fleetsim.devicesimulation.domain.model.aggregates import ConnectionState, Reading
from fleetsim.devicesimulation.domain.services import TemperatureGenerator

from conftest import make_identity


@pytest.fixture
def generator(noon):
    generator = Mock()
    generator.generate.return_value = Reading(value=23.4, time=noon)
    return generator


@pytest.fixture
def publish_loop(connection, generator):
    loop = PublishLoop(connection, generator, interval_ms=1000)
    connection.attach_publish_loop(loop)
    yield loop
    loop.stop(wait=True)


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestTick:
    """One tick per connection state."""

    def test_tick_while_connected_sends_exactly_once(self, connection, transport, publish_loop, generator):
        connection.connect()
        transport.last_handle.complete_open()

        assert publish_loop.tick() is True

        assert len(transport.last_handle.sent) == 1
        payload, properties, _ = transport.last_handle.sent[0]
        assert json.loads(payload)["value"] == 23.4
        assert properties['$$contentType'] == 'json'
        generator.generate.assert_called_once_with()

    def test_tick_while_connecting_skips(self, connection, transport, publish_loop, generator):
        connection.connect()

        assert publish_loop.tick() is False

        assert transport.last_handle.sent == []
        generator.generate.assert_not_called()

    @pytest.mark.parametrize("state", [ConnectionState.FAILED, ConnectionState.DISCONNECTED])
    def test_tick_while_not_connected_skips(self, connection, transport, publish_loop, generator, state):
        connection.connect()
        transport.last_handle.complete_open()
        connection.state = state

        assert publish_loop.tick() is False

        assert transport.last_handle.sent == []
        generator.generate.assert_not_called()

    def test_tick_before_connect_never_sends(self, connection, transport, publish_loop):
        assert publish_loop.tick() is False
        assert transport.handles == []

    def test_identity_schema_is_attached(self, transport, generator):
        connection = DeviceConnection(make_identity(message_schema="temperature;v1"), transport)
        loop = PublishLoop(connection, generator, interval_ms=1000)
        connection.connect()
        transport.last_handle.complete_open()

        loop.tick()

        _, properties, _ = transport.last_handle.sent[0]
        assert properties['$$MessageSchema'] == 'temperature;v1'
        connection.disconnect()

    def test_generator_schema_is_used_as_fallback(self, connection, transport, noon):
        generator = Mock()
        generator.generate.return_value = Reading(value=70.0, time=noon, schema="humidity;v1")
        loop = PublishLoop(connection, generator, interval_ms=1000)
        connection.connect()
        transport.last_handle.complete_open()

        loop.tick()

        _, properties, _ = transport.last_handle.sent[0]
        assert properties['$$MessageSchema'] == 'humidity;v1'

    def test_ticks_do_not_wait_for_send_results(self, connection, transport, publish_loop):
        connection.connect()
        transport.last_handle.complete_open()

        for _ in range(5):
            publish_loop.tick()

        assert len(transport.last_handle.sent) == 5
        assert connection.stats.in_flight == 5

    def test_concurrent_ticks_are_all_counted(self, connection, publish_loop):
        def tick_many():
            for _ in range(200):
                publish_loop.tick()

        threads = [threading.Thread(target=tick_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert publish_loop.tick_count == 1600

    def test_real_generator_payload(self, connection, transport):
        loop = PublishLoop(connection, TemperatureGenerator(), interval_ms=1000)
        connection.connect()
        transport.last_handle.complete_open()

        loop.tick()

        body = json.loads(transport.last_handle.sent[0][0])
        assert set(body) == {"value", "time"}
        assert -10 <= body["value"] <= 40


class TestLoopLifecycle:
    """Periodic task and its cancellation token."""

    def test_interval_is_converted_to_seconds(self, publish_loop):
        assert publish_loop.interval_seconds == 1.0
        assert publish_loop.name == "publish-device1000"

    def test_loop_ticks_periodically(self, connection, generator):
        loop = PublishLoop(connection, generator, interval_ms=10)

        loop.start()
        try:
            assert _wait_for(lambda: loop.tick_count >= 3)
        finally:
            loop.stop(wait=True)

        assert not loop.is_running()

    def test_stopped_loop_does_not_tick_again(self, connection, generator):
        loop = PublishLoop(connection, generator, interval_ms=10)
        loop.start()
        assert _wait_for(lambda: loop.tick_count >= 1)

        loop.stop(wait=True)
        ticks = loop.tick_count
        time.sleep(0.1)

        assert loop.tick_count == ticks

    def test_restart_replaces_the_task(self, connection, generator):
        loop = PublishLoop(connection, generator, interval_ms=10)
        loop.start()
        first_thread = loop.thread

        loop.stop()
        loop.start()
        try:
            assert loop.thread is not first_thread
            first_thread.join(timeout=1)
            assert not first_thread.is_alive()
            assert loop.is_running()
        finally:
            loop.stop(wait=True)

    def test_start_twice_keeps_one_task(self, connection, generator):
        loop = PublishLoop(connection, generator, interval_ms=1000)
        loop.start()
        thread = loop.thread

        loop.start()
        try:
            assert loop.thread is thread
        finally:
            loop.stop(wait=True)

    def test_tick_exception_keeps_loop_running(self, connection, transport):
        generator = Mock()
        generator.generate.side_effect = RuntimeError("sensor broke")
        connection.connect()
        transport.last_handle.complete_open()
        loop = PublishLoop(connection, generator, interval_ms=10)

        loop.start()
        try:
            assert _wait_for(lambda: generator.generate.call_count >= 2)
            assert loop.is_running()
        finally:
            loop.stop(wait=True)

    def test_disconnect_restarts_a_single_task(self, connection, transport, publish_loop):
        connection.connect()
        transport.last_handle.complete_open()
        publish_loop.start()
        first_thread = publish_loop.thread

        transport.last_handle.emit('disconnect')

        assert publish_loop.is_running()
        assert publish_loop.thread is not first_thread
        first_thread.join(timeout=2)
        assert not first_thread.is_alive()
