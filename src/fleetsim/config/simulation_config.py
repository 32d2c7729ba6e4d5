import os

from dotenv import load_dotenv

load_dotenv()


class SimulationConfig:
    """
    Fleet simulation settings

    Defaults used when the roster file leaves a value out
    """

    # Roster file (hub name, devices and access keys)
    ROSTER_FILE = os.getenv('ROSTER_FILE', './config/devices.json')

    # Publishing
    PUBLISH_FREQUENCY_MS = int(os.getenv('PUBLISH_FREQUENCY_MS', 1000))
    PUBLISH_RANDOMNESS_MS = int(os.getenv('PUBLISH_RANDOMNESS_MS', 10))

    # Generator used for devices without an explicit model
    DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', 'temperature')

    # Seconds to wait before reconnecting after a disconnect (0 = immediately)
    RECONNECT_DELAY = float(os.getenv('RECONNECT_DELAY', 0))

    # Log successful send/ack results at INFO instead of DEBUG
    LOG_SEND_RESULTS = os.getenv('LOG_SEND_RESULTS', 'False').lower() == 'true'
