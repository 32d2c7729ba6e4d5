import logging

from fleetsim.config import HubConfig
from .iothub_transport import IotHubTransport
from .mqtt_transport import MqttTransport
from .transport import Transport

logger = logging.getLogger(__name__)

TRANSPORTS = {
    'sdk': IotHubTransport,
    'paho': MqttTransport
}


def create_transport(hub_config=HubConfig) -> Transport:
    """
    Transport selected by HubConfig.TRANSPORT

    'sdk'  → IoT Hub device SDK (default)
    'paho' → plain paho MQTT client

    Raises:
        ValueError: If the transport name is unknown
    """
    name = str(hub_config.TRANSPORT).strip().lower()

    if name not in TRANSPORTS:
        raise ValueError(
            f"Unknown transport {hub_config.TRANSPORT!r}, "
            f"expected one of: {', '.join(TRANSPORTS)}"
        )

    logger.info(f"Using '{name}' hub transport")
    return TRANSPORTS[name](hub_config)
