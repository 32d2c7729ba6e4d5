import logging
import threading
from typing import Callable, Dict, Optional, Set
from urllib.parse import parse_qsl, urlencode

import paho.mqtt.client as mqtt

from fleetsim.config import HubConfig
from .connection_string import ConnectionString, generate_sas_token
from .transport import (
    ConnectError,
    OpenCallback,
    ReceivedMessage,
    ResultCallback,
    SendError,
    Transport,
    TransportError,
    TransportHandle,
    TransportProtocol
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], mqtt.Client]


def _default_client_factory(client_id: str, transport: str) -> mqtt.Client:
    return mqtt.Client(
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        transport=transport
    )


class MqttDeviceHandle(TransportHandle):
    """
    One device connection to the hub over plain MQTT (paho)

    Responsibilities:
        - Authenticate with a SAS token derived from the connection string
        - Publish telemetry with message properties in the topic
        - Receive cloud-to-device messages
        - Report connect, publish and disconnect outcomes as callbacks/events

    A handle is single use: after a disconnect the network loop is stopped and
    the owner creates a new handle. paho's own automatic reconnect is never
    used.

    paho calls on_publish while holding its outgoing message lock, so this
    handle never calls into the client while holding its own lock.
    """

    def __init__(
            self,
            credential: str,
            protocol: TransportProtocol,
            hub_config=HubConfig,
            client_factory: Optional[ClientFactory] = None
    ):
        super().__init__()
        self.credential = credential
        self.protocol = protocol
        self.hub_config = hub_config
        self._client_factory = client_factory or _default_client_factory

        self.client: Optional[mqtt.Client] = None
        self.device_id: Optional[str] = None

        self._lock = threading.RLock()
        self._open_callback: Optional[OpenCallback] = None
        self._open_started = False
        self._connected = False
        self._closing = False

        # mid → send callback, completed by on_publish
        self._pending: Dict[int, ResultCallback] = {}
        # PUBACKs that arrived before publish() returned their mid
        self._early_acks: Set[int] = set()

    # ========================================
    # Operations
    # ========================================

    def open(self, callback: OpenCallback):
        """
        Start connecting in the background

        The callback is called exactly once, from the paho network thread,
        or synchronously when the connection cannot even be attempted.
        """
        with self._lock:
            if self._open_started:
                already_opened = True
            else:
                already_opened = False
                self._open_started = True
                self._open_callback = callback

        if already_opened:
            callback(ConnectError("Handle has already been opened"))
            return

        try:
            connection = ConnectionString.parse(self.credential)
            self.device_id = connection.device_id
            self.client = self._create_client(connection)

            if self.protocol is TransportProtocol.MQTT_WS:
                port = self.hub_config.MQTT_WS_PORT
            else:
                port = self.hub_config.MQTT_PORT

            logger.debug(
                f"Connecting {connection.device_id} to "
                f"{connection.host_name}:{port} ({self.protocol.value})"
            )

            self.client.connect_async(
                connection.host_name,
                port,
                self.hub_config.KEEP_ALIVE
            )
            self.client.loop_start()

        except (ValueError, OSError) as e:
            self._complete_open(ConnectError(str(e)))

    def send(self, payload: str, properties: Dict[str, str], callback: ResultCallback):
        """
        Publish telemetry (QoS 1)

        The callback receives (None, result) once the hub acknowledged the
        message, or (error, None) if the publish could not be queued.
        """
        client = self.client
        if client is None or self.device_id is None:
            callback(SendError("Handle is not open"), None)
            return

        topic = self.telemetry_topic(self.device_id, properties)

        try:
            info = client.publish(
                topic,
                payload,
                qos=self.hub_config.QOS_PUBLISH
            )
        except (ValueError, RuntimeError) as e:
            callback(SendError(str(e)), None)
            return

        with self._lock:
            acknowledged = info.mid in self._early_acks
            self._early_acks.discard(info.mid)

            if info.rc == mqtt.MQTT_ERR_SUCCESS and not acknowledged and not self._closing:
                self._pending[info.mid] = callback
                return

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            callback(SendError(mqtt.error_string(info.rc)), None)
        elif acknowledged:
            callback(None, "MessageEnqueued")

    def acknowledge(self, message: ReceivedMessage, callback: ResultCallback):
        """
        Complete a cloud-to-device message

        Over MQTT the message is completed by the PUBACK paho sends on receipt,
        so the callback fires immediately.
        """
        callback(None, "MessageCompleted")

    def close(self):
        """Disconnect and stop the network loop without emitting 'disconnect'"""
        with self._lock:
            if self._closing:
                return
            self._closing = True
            self._open_callback = None
            self._pending.clear()
            self._early_acks.clear()
            client = self.client

        if client is None:
            return

        client.disconnect()
        client.loop_stop()

    def is_connected(self) -> bool:
        return self._connected

    # ========================================
    # Helpers
    # ========================================

    @staticmethod
    def telemetry_topic(device_id: str, properties: Dict[str, str]) -> str:
        """devices/{id}/messages/events/{url-encoded properties}"""
        return f"devices/{device_id}/messages/events/{urlencode(properties)}"

    @staticmethod
    def devicebound_topic(device_id: str) -> str:
        return f"devices/{device_id}/messages/devicebound/#"

    @staticmethod
    def parse_devicebound_message(topic: str, payload: bytes) -> ReceivedMessage:
        """
        Build a ReceivedMessage from a devicebound topic

        Topic format: devices/{id}/messages/devicebound/{property bag}
        The property bag carries system properties such as $.mid (message id).
        """
        _, _, property_bag = topic.partition('/messages/devicebound/')
        properties = dict(parse_qsl(property_bag, keep_blank_values=True))

        return ReceivedMessage(
            message_id=properties.get('$.mid'),
            data=payload,
            properties=properties,
            topic=topic
        )

    def _create_client(self, connection: ConnectionString) -> mqtt.Client:
        transport = 'websockets' if self.protocol is TransportProtocol.MQTT_WS else 'tcp'
        client = self._client_factory(connection.device_id, transport)

        username = (
            f"{connection.host_name}/{connection.device_id}"
            f"/?api-version={self.hub_config.API_VERSION}"
        )
        password = generate_sas_token(
            connection.resource_uri(),
            connection.shared_access_key,
            self.hub_config.SAS_TOKEN_TTL
        )
        client.username_pw_set(username, password)

        if transport == 'websockets':
            client.ws_set_options(path=self.hub_config.MQTT_WS_PATH)

        if self.hub_config.MQTT_USE_TLS:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        client.on_publish = self._on_publish
        client.on_log = self._on_log

        return client

    def _complete_open(self, error: Optional[Exception]):
        """Deliver the open result once; a failed open stops the network loop"""
        with self._lock:
            callback = self._open_callback
            self._open_callback = None

        if error is not None and self.client is not None:
            # Stop paho from retrying on its own
            self.client.loop_stop()

        if callback is not None:
            callback(error)

    # ========================================
    # paho callbacks (network thread)
    # ========================================

    def _on_connect(self, client, userdata, flags, rc):
        """
        rc codes:
            0: Connection successful
            4: Connection refused - bad username or password (expired SAS token)
            5: Connection refused - not authorized (unknown device)
        """
        if rc != mqtt.CONNACK_ACCEPTED:
            self._complete_open(ConnectError(mqtt.connack_string(rc)))
            return

        self._connected = True
        client.subscribe(
            self.devicebound_topic(self.device_id),
            qos=self.hub_config.QOS_SUBSCRIBE
        )
        self._complete_open(None)

    def _on_connect_fail(self, client, userdata):
        self._complete_open(ConnectError("Could not reach the hub"))

    def _on_disconnect(self, client, userdata, rc):
        was_connected = self._connected
        self._connected = False

        with self._lock:
            closing = self._closing
            self._pending.clear()
            self._early_acks.clear()

        if closing or not was_connected:
            return

        # Single use handle: stop paho's reconnect, the owner opens a new handle
        client.loop_stop()
        logger.debug(f"Unexpected disconnect of {self.device_id} (rc={rc})")
        self.emit('disconnect')

    def _on_message(self, client, userdata, msg):
        try:
            message = self.parse_devicebound_message(msg.topic, msg.payload)
        except (TypeError, ValueError) as e:
            self.emit('error', TransportError(f"Invalid message on {msg.topic}: {e}"))
            return

        self.emit('message', message)

    def _on_publish(self, client, userdata, mid):
        # Runs while paho holds its outgoing message lock
        with self._lock:
            callback = self._pending.pop(mid, None)
            if callback is None:
                if not self._closing:
                    self._early_acks.add(mid)
                return

        callback(None, "MessageEnqueued")

    def _on_log(self, client, userdata, level, buf):
        if level == mqtt.MQTT_LOG_ERR:
            self.emit('error', TransportError(buf))


class MqttTransport(Transport):
    """Creates paho MQTT handles for devices"""

    def __init__(self, hub_config=HubConfig, client_factory: Optional[ClientFactory] = None):
        self.hub_config = hub_config
        self.client_factory = client_factory

    def create_handle(self, credential: str, protocol: TransportProtocol) -> MqttDeviceHandle:
        return MqttDeviceHandle(
            credential,
            TransportProtocol.from_value(protocol),
            hub_config=self.hub_config,
            client_factory=self.client_factory
        )
