import os

from dotenv import load_dotenv

load_dotenv()


class HubConfig:
    """
    Message hub connection settings (device side)

    Topics Structure (per device):
    - devices/{deviceId}/messages/events/{properties}  → Device publish telemetry
    - devices/{deviceId}/messages/devicebound/#        → Hub deliver cloud-to-device messages
    """

    # ========================================
    # Hub Configuration
    # ========================================
    HUB_NAME = os.getenv('HUB_NAME', 'my-iothub')
    HUB_HOST_SUFFIX = os.getenv('HUB_HOST_SUFFIX', 'azure-devices.net')

    # Hub client: 'sdk' (IoT Hub device SDK) or 'paho' (plain paho MQTT client)
    TRANSPORT = os.getenv('HUB_TRANSPORT', 'sdk')

    # Protocol used when the roster does not choose one ('mqtt' or 'mqtt_ws')
    DEFAULT_PROTOCOL = os.getenv('HUB_PROTOCOL', 'mqtt')

    # ========================================
    # MQTT Connection Settings
    # ========================================
    MQTT_PORT = int(os.getenv('MQTT_PORT', 8883))
    MQTT_WS_PORT = int(os.getenv('MQTT_WS_PORT', 443))
    MQTT_WS_PATH = '/$iothub/websocket'
    MQTT_USE_TLS = os.getenv('MQTT_USE_TLS', 'True').lower() == 'true'
    KEEP_ALIVE = int(os.getenv('MQTT_KEEP_ALIVE', 60))  # Seconds

    # ========================================
    # Authentication
    # ========================================
    API_VERSION = os.getenv('IOTHUB_API_VERSION', '2021-04-12')
    SAS_TOKEN_TTL = int(os.getenv('SAS_TOKEN_TTL', 3600))  # Seconds

    # ========================================
    # QoS Levels
    # ========================================
    QOS_SUBSCRIBE = 1  # At least once
    QOS_PUBLISH = 1  # At least once

    @classmethod
    def get_host_name(cls, hub_name: str) -> str:
        """Fully qualified host name for a hub"""
        return f"{hub_name}.{cls.HUB_HOST_SUFFIX}"
