import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS

from fleetsim.config import HubConfig, SimulationConfig
from fleetsim.devicesimulation.application.fleet import FleetRunner
from fleetsim.devicesimulation.application.services import FleetSettings
from fleetsim.devicesimulation.domain.model.aggregates import DeviceRoster
from fleetsim.devicesimulation.infrastructure.roster import DeviceRosterLoader
from fleetsim.devicesimulation.interfaces.rest import DeviceController
from fleetsim.shared.infrastructure.mqtt import Transport, create_transport
from fleetsim.shared.interfaces import HealthController

logger = logging.getLogger(__name__)


class Container:
    """
    Dependency Injection Container

    Manages all application dependencies and their lifecycle.
    """

    def __init__(
            self,
            roster: Optional[DeviceRoster] = None,
            transport: Optional[Transport] = None,
            settings: Optional[FleetSettings] = None
    ):
        """
        Args:
            roster: Devices to simulate (loaded from SimulationConfig.ROSTER_FILE if omitted)
            transport: Hub transport (HubConfig.TRANSPORT if omitted)
            settings: Fleet preferences (from SimulationConfig if omitted)
        """
        logger.info("Initializing application container...")

        # Configuration
        self.settings = settings or FleetSettings.from_config(SimulationConfig)

        # Infrastructure - Roster
        self.roster_loader = DeviceRosterLoader(SimulationConfig.ROSTER_FILE)
        self.roster = roster if roster is not None else self.roster_loader.load()

        # Infrastructure - Transport
        self.transport = transport or create_transport(HubConfig)

        # Application
        self.fleet_runner = FleetRunner(
            self.roster,
            self.transport,
            settings=self.settings
        )

        # REST Controllers
        self.health_controller = HealthController(self.fleet_runner)
        self.device_controller = DeviceController(self.fleet_runner)

        logger.info("Application container initialized")

    def create_flask_app(self) -> Flask:
        """
        Create and configure the status API

        Returns:
            Configured Flask app
        """
        app = Flask(__name__)

        # Enable CORS
        CORS(app)

        # Register blueprints
        app.register_blueprint(self.health_controller.get_blueprint())
        app.register_blueprint(self.device_controller.get_blueprint())

        logger.info("Flask app created")
        return app

    def start_fleet(self):
        """Connect all devices and start publishing"""
        logger.info("Starting fleet...")
        self.fleet_runner.start()

    def shutdown(self):
        """Gracefully shutdown all components"""
        logger.info("Shutting down application...")

        logger.info("Stopping simulated devices...")
        self.fleet_runner.stop()

        logger.info("Application shutdown complete")
