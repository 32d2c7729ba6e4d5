"""
Fleet Runner Tests.
"""
import random
import time
from unittest.mock import Mock

import pytest

from fleetsim.devicesimulation.application.fleet import FleetRunner
from fleetsim.devicesimulation.application.services import FleetSettings
from fleetsim.devicesimulation.domain.model.aggregates import ConnectionState, DeviceRoster
from fleetsim.devicesimulation.domain.services import (
    HumidityGenerator,
    RandomTemperatureGenerator,
    TemperatureGenerator
)

from conftest import make_identity


@pytest.fixture
def runner(roster, transport, rng):
    runner = FleetRunner(roster, transport, settings=FleetSettings(), rng=rng)
    yield runner
    runner.stop()


class TestFleetConstruction:

    def test_one_device_per_roster_entry(self, runner):
        assert list(runner.devices) == ["device1000", "device1001", "device1002"]

    def test_generator_follows_device_model(self, runner):
        assert isinstance(runner.get_device("device1000").generator, TemperatureGenerator)
        assert isinstance(runner.get_device("device1001").generator, HumidityGenerator)
        assert isinstance(runner.get_device("device1002").generator, RandomTemperatureGenerator)

    def test_connection_owns_its_publish_loop(self, runner):
        device = runner.get_device("device1000")

        assert device.connection.publish_loop is device.publish_loop

    def test_intervals_are_jittered_independently(self, runner):
        intervals = [device.publish_loop.interval_ms for device in runner.devices.values()]

        assert len(set(intervals)) == 3
        for interval in intervals:
            assert 995 <= interval <= 1005

    def test_jitter_stays_within_half_randomness(self, transport):
        roster = DeviceRoster(hub_name="hub", frequency_ms=500, randomness_ms=100)
        runner = FleetRunner(roster, transport, rng=random.Random(3))

        for _ in range(1000):
            assert 450 <= runner.jittered_interval() <= 550

    def test_no_randomness_means_base_interval(self, transport):
        roster = DeviceRoster(hub_name="hub", frequency_ms=250, randomness_ms=0)
        runner = FleetRunner(roster, transport)

        assert runner.jittered_interval() == 250

    def test_interval_never_drops_below_minimum(self, transport):
        roster = DeviceRoster(hub_name="hub", frequency_ms=1, randomness_ms=10)
        runner = FleetRunner(roster, transport, rng=random.Random(0))

        for _ in range(100):
            assert runner.jittered_interval() >= 1

    def test_unknown_model_is_skipped(self, transport):
        roster = DeviceRoster(
            hub_name="hub",
            frequency_ms=1000,
            randomness_ms=0,
            devices=[make_identity("good"), make_identity("bad", model="pressure")]
        )

        runner = FleetRunner(roster, transport)

        assert list(runner.devices) == ["good"]

    def test_duplicate_device_is_skipped(self, transport):
        roster = DeviceRoster(
            hub_name="hub",
            frequency_ms=1000,
            randomness_ms=0,
            devices=[make_identity("twin"), make_identity("twin", model="humidity")]
        )

        runner = FleetRunner(roster, transport)

        assert len(runner.devices) == 1
        assert isinstance(runner.get_device("twin").generator, TemperatureGenerator)

    def test_custom_generator_factory(self, roster, transport):
        factory = Mock(return_value=Mock())

        FleetRunner(roster, transport, generator_factory=factory)

        assert factory.call_count == 3


class TestFleetLifecycle:

    def test_start_connects_every_device(self, runner, transport):
        runner.start()

        assert len(transport.handles) == 3
        for device in runner.devices.values():
            assert device.connection.state is ConnectionState.CONNECTING
            assert device.publish_loop.is_running()

    def test_devices_connect_independently(self, runner, transport):
        runner.start()

        transport.handles[1].complete_open()

        states = [device.connection.state for device in runner.devices.values()]
        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.CONNECTING
        ]
        assert runner.connected_count() == 1

    def test_start_failure_of_one_device_does_not_stop_others(self, runner, transport):
        runner.get_device("device1000").connection.connect = Mock(side_effect=RuntimeError("boom"))

        runner.start()

        assert runner.get_device("device1001").publish_loop.is_running()
        assert runner.get_device("device1002").publish_loop.is_running()

    def test_stopping_one_timer_leaves_others_running(self, roster, transport, rng):
        fast_roster = DeviceRoster(
            hub_name=roster.hub_name,
            frequency_ms=10,
            randomness_ms=4,
            devices=roster.devices
        )
        runner = FleetRunner(fast_roster, transport, rng=rng)
        runner.start()
        try:
            stopped = runner.get_device("device1001").publish_loop
            stopped.stop(wait=True)
            ticks_when_stopped = stopped.tick_count
            others = [runner.get_device("device1000").publish_loop,
                      runner.get_device("device1002").publish_loop]
            before = [loop.tick_count for loop in others]

            time.sleep(0.2)

            assert stopped.tick_count == ticks_when_stopped
            assert not stopped.is_running()
            for loop, count in zip(others, before):
                assert loop.is_running()
                assert loop.tick_count > count
        finally:
            runner.stop()

    def test_stop_tears_down_every_device(self, runner, transport):
        runner.start()
        for handle in transport.handles:
            handle.complete_open()

        runner.stop()

        assert not runner.is_running()
        for device in runner.devices.values():
            assert device.connection.state is ConnectionState.DISCONNECTED
            assert not device.publish_loop.is_running()
        assert all(handle.closed for handle in transport.handles)

    def test_snapshot_lists_every_device(self, runner):
        snapshot = runner.snapshot()

        assert [entry['deviceId'] for entry in snapshot] == list(runner.devices)
        assert all('intervalMs' in entry for entry in snapshot)
