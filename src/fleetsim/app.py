import logging
import signal
import sys
import threading

from fleetsim.config import AppConfig, HubConfig, SimulationConfig
from fleetsim.container import Container
from fleetsim.devicesimulation.infrastructure.roster import RosterError
from fleetsim.shared.infrastructure.logging import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Main application entry point"""
    setup_logging(AppConfig)

    logger.info("=" * 80)
    logger.info("DEVICE FLEET SIMULATOR")
    logger.info("=" * 80)

    try:
        container = Container()
    except RosterError as e:
        logger.error(f"Cannot load device roster: {e}")
        sys.exit(1)

    stop_event = threading.Event()

    # Set up graceful shutdown
    def signal_handler(sig, frame):
        logger.info(f"\nReceived signal {sig}, initiating shutdown...")
        stop_event.set()
        container.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    container.start_fleet()

    logger.info("=" * 80)
    logger.info("Hub Configuration:")
    logger.info(f"  - Hub: {HubConfig.get_host_name(container.roster.hub_name)}")
    logger.info(f"  - Transport: {HubConfig.TRANSPORT}")
    logger.info(f"  - Default protocol: {HubConfig.DEFAULT_PROTOCOL}")
    logger.info(f"  - TLS: {HubConfig.MQTT_USE_TLS}")
    logger.info("")
    logger.info("Simulation Configuration:")
    logger.info(f"  - Devices: {len(container.fleet_runner.devices)}")
    logger.info(f"  - Frequency: {container.roster.frequency_ms}ms")
    logger.info(f"  - Randomness: {container.roster.randomness_ms}ms")
    logger.info(f"  - Reconnect delay: {SimulationConfig.RECONNECT_DELAY}s")
    logger.info("=" * 80)

    if not AppConfig.STATUS_API_ENABLED:
        logger.info("Status API disabled, press CTRL+C to stop")
        stop_event.wait()
        return

    logger.info(f"Starting status API on {AppConfig.STATUS_API_HOST}:{AppConfig.STATUS_API_PORT}")
    logger.info("Available endpoints:")
    logger.info("  - GET    /health")
    logger.info("  - GET    /info")
    logger.info("  - GET    /devices")
    logger.info("  - GET    /devices/<device_id>")

    app = container.create_flask_app()

    try:
        app.run(
            host=AppConfig.STATUS_API_HOST,
            port=AppConfig.STATUS_API_PORT,
            debug=False,
            use_reloader=False  # Disable reloader to avoid duplicate fleets
        )
    except Exception as e:
        logger.error(f"Flask server error: {e}", exc_info=True)
    finally:
        container.shutdown()


if __name__ == '__main__':
    main()
