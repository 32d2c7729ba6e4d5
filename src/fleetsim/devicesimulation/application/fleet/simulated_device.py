import logging
from dataclasses import dataclass

from fleetsim.devicesimulation.application.services import DeviceConnection
from fleetsim.devicesimulation.application.workers import PublishLoop
from fleetsim.devicesimulation.domain.services import DataGenerator

logger = logging.getLogger(__name__)


@dataclass
class SimulatedDevice:
    """
    One device of the fleet: its connection and its publish loop
    """
    connection: DeviceConnection
    publish_loop: PublishLoop
    generator: DataGenerator

    def __post_init__(self):
        self.connection.attach_publish_loop(self.publish_loop)

    @property
    def device_id(self) -> str:
        return self.connection.name

    def start(self):
        """Connect and start publishing; neither waits for the connection"""
        self.connection.connect()
        self.publish_loop.start()

    def stop(self):
        self.publish_loop.stop(wait=True)
        self.connection.disconnect()

    def snapshot(self) -> dict:
        snapshot = self.connection.snapshot()
        snapshot['intervalMs'] = round(self.publish_loop.interval_ms, 1)
        snapshot['publishing'] = self.publish_loop.is_running()
        return snapshot
