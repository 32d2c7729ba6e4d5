import logging
import random
from typing import Callable, Dict, List, Optional

from fleetsim.devicesimulation.application.services import DeviceConnection, FleetSettings
from fleetsim.devicesimulation.application.workers import PublishLoop
from fleetsim.devicesimulation.domain.model.aggregates import DeviceIdentity, DeviceRoster
from fleetsim.devicesimulation.domain.services import DataGenerator, create_generator
from fleetsim.shared.infrastructure.mqtt import Transport
from .simulated_device import SimulatedDevice

logger = logging.getLogger(__name__)

GeneratorFactory = Callable[[DeviceIdentity], DataGenerator]

# Shortest publish interval a jittered device can end up with
MIN_INTERVAL_MS = 1


def default_generator_factory(identity: DeviceIdentity) -> DataGenerator:
    return create_generator(identity.model, schema=identity.message_schema)


class FleetRunner:
    """
    Runs a roster of simulated devices

    Responsibilities:
    - Build one connection + publish loop per roster entry
    - Jitter each device's interval so publishes don't burst together
    - Start every device independently (no ordering between devices)

    Business Logic:
    - interval = frequency + uniform(-randomness / 2, +randomness / 2) ms
    - A device that fails to build or start is logged and skipped
    - stop() is only meant for process shutdown
    """

    def __init__(
            self,
            roster: DeviceRoster,
            transport: Transport,
            settings: Optional[FleetSettings] = None,
            generator_factory: GeneratorFactory = default_generator_factory,
            rng: Optional[random.Random] = None
    ):
        """
        Initialize runner

        Args:
            roster: Hub name, intervals and device identities
            transport: Transport shared by all devices (one handle each)
            settings: Logging and reconnect preferences
            generator_factory: Builds the data generator of a device
            rng: Random source for the interval jitter
        """
        self.roster = roster
        self.transport = transport
        self.settings = settings or FleetSettings()
        self.generator_factory = generator_factory
        self.rng = rng or random.Random()

        self.devices: Dict[str, SimulatedDevice] = {}
        self.running = False

        for identity in roster.devices:
            self._add_device(identity)

        logger.info(
            f"Fleet Runner initialized: {len(self.devices)} device(s) on hub "
            f"'{roster.hub_name}' (every {roster.frequency_ms}ms "
            f"± {roster.randomness_ms / 2}ms)"
        )

    def jittered_interval(self) -> float:
        """Base frequency plus a random offset in [-randomness/2, +randomness/2]"""
        half = self.roster.randomness_ms / 2
        interval = self.roster.frequency_ms + self.rng.uniform(-half, half)
        return max(MIN_INTERVAL_MS, interval)

    def _add_device(self, identity: DeviceIdentity):
        if identity.device_id in self.devices:
            logger.warning(f"Duplicate device in roster, skipping: {identity.device_id}")
            return

        try:
            generator = self.generator_factory(identity)
        except ValueError as e:
            logger.error(f"[{identity.device_id}] Cannot create data generator: {e}")
            return

        connection = DeviceConnection(identity, self.transport, self.settings)
        publish_loop = PublishLoop(connection, generator, self.jittered_interval())

        self.devices[identity.device_id] = SimulatedDevice(
            connection=connection,
            publish_loop=publish_loop,
            generator=generator
        )

    def start(self):
        """Connect every device and start its publish loop"""
        if self.running:
            logger.warning("Fleet is already running")
            return

        logger.info(f"Starting {len(self.devices)} simulated device(s)...")
        self.running = True

        for device in self.devices.values():
            try:
                device.start()
            except Exception as e:
                logger.error(
                    f"[{device.device_id}] Failed to start: {e}",
                    exc_info=True
                )

        logger.info("All simulated devices started")

    def stop(self):
        """Stop every device (process shutdown)"""
        if not self.running:
            return

        logger.info("Stopping simulated devices...")
        self.running = False

        for device in self.devices.values():
            try:
                device.stop()
            except Exception as e:
                logger.error(
                    f"[{device.device_id}] Error while stopping: {e}",
                    exc_info=True
                )

        logger.info("All simulated devices stopped")

    def get_device(self, device_id: str) -> Optional[SimulatedDevice]:
        return self.devices.get(device_id)

    def connected_count(self) -> int:
        return sum(1 for device in self.devices.values() if device.connection.is_connected())

    def snapshot(self) -> List[dict]:
        return [device.snapshot() for device in self.devices.values()]

    def is_running(self) -> bool:
        return self.running
