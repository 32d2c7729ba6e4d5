import logging

from fleetsim.devicesimulation.application.services import DeviceConnection
from fleetsim.devicesimulation.domain.model.aggregates import ConnectionState
from fleetsim.devicesimulation.domain.services import DataGenerator
from fleetsim.shared.infrastructure.workers import BackgroundWorker

logger = logging.getLogger(__name__)


class PublishLoop(BackgroundWorker):
    """
    Periodic telemetry publishing for one device

    Responsibilities:
    - Tick every interval_ms, whatever the connection state
    - Skip (and log) ticks while the device is not connected
    - Generate a reading and hand it to the connection while connected

    Sends are fire-and-forget: the loop never waits for a send to complete
    and has no back-pressure, so a stalled transport accumulates in-flight
    sends (visible in the device stats).
    """

    def __init__(
            self,
            connection: DeviceConnection,
            generator: DataGenerator,
            interval_ms: float
    ):
        super().__init__(
            name=f"publish-{connection.name}",
            interval_seconds=interval_ms / 1000
        )
        self.connection = connection
        self.generator = generator
        self.interval_ms = interval_ms
        self.tick_count = 0

    def do_work(self):
        self.tick()

    def tick(self) -> bool:
        """
        Run one publish attempt

        Returns:
            True if a reading was handed to the transport
        """
        with self._lock:
            self.tick_count += 1
        name = self.connection.name
        state = self.connection.get_state()

        if state is ConnectionState.CONNECTING:
            logger.warning(f"[{name}] The client is not connected yet... [{state.value}]")
            return False

        if state is not ConnectionState.CONNECTED:
            logger.warning(f"[{name}] The client could not connect [{state.value}]")
            return False

        reading = self.generator.generate()
        schema = self.connection.identity.message_schema or reading.schema

        return self.connection.publish(reading.serialize(), schema)
