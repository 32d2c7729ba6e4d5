import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional

from azure.iot.device import IoTHubDeviceClient, Message
from azure.iot.device import exceptions as iothub_errors

from fleetsim.config import HubConfig
from .connection_string import ConnectionString
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

ClientFactory = Callable[[str, bool], IoTHubDeviceClient]

# Failures the device SDK reports for connect/send operations
SDK_ERRORS = (iothub_errors.ClientError, iothub_errors.ServiceError)


def _client_factory_for(hub_config) -> ClientFactory:
    def create_client(connection_string: str, websockets: bool) -> IoTHubDeviceClient:
        return IoTHubDeviceClient.create_from_connection_string(
            connection_string,
            websockets=websockets,
            keep_alive=hub_config.KEEP_ALIVE,
            sastoken_ttl=hub_config.SAS_TOKEN_TTL,
            # Single use handles: the device connection opens a new one
            connection_retry=False,
            auto_connect=False
        )

    return create_client


class IotHubDeviceHandle(TransportHandle):
    """
    One device connection to the hub through the IoT Hub device SDK

    Responsibilities:
        - Create the SDK client from the device connection string
        - Connect and send on background threads (the SDK client blocks)
        - Forward cloud-to-device messages and dropped connections as events

    Sends run one at a time, in order, on a per-handle worker thread, so the
    publish loop never waits for the hub.
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
        self._client_factory = client_factory or _client_factory_for(hub_config)

        self.client: Optional[IoTHubDeviceClient] = None
        self.device_id: Optional[str] = None

        self._lock = threading.Lock()
        self._open_started = False
        self._connected = False
        self._closing = False
        self._executor: Optional[ThreadPoolExecutor] = None

    # ========================================
    # Operations
    # ========================================

    def open(self, callback: OpenCallback):
        """
        Connect on a background thread; callback(None) or callback(error)

        Credential errors are reported synchronously.
        """
        with self._lock:
            already_opened = self._open_started
            self._open_started = True

        if already_opened:
            callback(ConnectError("Handle has already been opened"))
            return

        try:
            self.device_id = ConnectionString.parse(self.credential).device_id
            self.client = self._client_factory(
                self.credential,
                self.protocol is TransportProtocol.MQTT_WS
            )
        except ValueError as e:
            callback(ConnectError(str(e)))
            return

        self.client.on_message_received = self._on_message_received
        self.client.on_connection_state_change = self._on_connection_state_change
        self.client.on_background_exception = self._on_background_exception

        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=f"Send-{self.device_id}"
        )

        threading.Thread(
            target=self._connect,
            args=(callback,),
            daemon=True,
            name=f"Connect-{self.device_id}"
        ).start()

    def send(self, payload: str, properties: Dict[str, str], callback: ResultCallback):
        """
        Queue a telemetry message

        The callback receives (None, result) once the hub acknowledged the
        message, or (error, None) if it could not be sent.
        """
        if self.client is None or self._executor is None:
            callback(SendError("Handle is not open"), None)
            return

        message = Message(payload)
        message.custom_properties.update(properties)

        try:
            self._executor.submit(self._send, message, callback)
        except RuntimeError as e:
            # Executor already shut down by close()
            callback(SendError(str(e)), None)

    def acknowledge(self, message: ReceivedMessage, callback: ResultCallback):
        """
        Complete a cloud-to-device message

        The SDK settles cloud-to-device messages on receipt, so the callback
        fires immediately.
        """
        callback(None, "MessageCompleted")

    def close(self):
        """Shut the client down in the background without emitting 'disconnect'"""
        with self._lock:
            if self._closing:
                return
            self._closing = True
            client = self.client
            executor = self._executor

        if executor is not None:
            executor.shutdown(wait=False)

        if client is None:
            return

        # shutdown() waits for the SDK handler threads, which may be the caller
        threading.Thread(
            target=self._shutdown_client,
            args=(client,),
            daemon=True,
            name=f"Shutdown-{self.device_id}"
        ).start()

    def is_connected(self) -> bool:
        return self._connected

    # ========================================
    # Background work
    # ========================================

    def _connect(self, callback: OpenCallback):
        logger.debug(f"Connecting {self.device_id} through the device SDK ({self.protocol.value})")

        try:
            self.client.connect()
        except SDK_ERRORS as e:
            # e.g. CredentialError, ConnectionFailedError, OperationTimeout
            callback(ConnectError(str(e) or type(e).__name__))
            return

        self._connected = True
        callback(None)

    def _send(self, message: Message, callback: ResultCallback):
        try:
            self.client.send_message(message)
        except SDK_ERRORS as e:
            callback(SendError(str(e) or type(e).__name__), None)
            return

        callback(None, "MessageEnqueued")

    def _shutdown_client(self, client: IoTHubDeviceClient):
        try:
            client.shutdown()
        except SDK_ERRORS as e:
            logger.warning(f"Error while shutting down client of {self.device_id}: {e}")

    # ========================================
    # SDK handlers
    # ========================================

    def _on_message_received(self, message: Message):
        data = message.data
        if not isinstance(data, bytes):
            data = str(data).encode('utf-8')

        self.emit('message', ReceivedMessage(
            message_id=message.message_id,
            data=data,
            properties=dict(message.custom_properties or {})
        ))

    def _on_connection_state_change(self):
        if self.client is None or self.client.connected:
            return

        was_connected = self._connected
        self._connected = False

        with self._lock:
            closing = self._closing

        if closing or not was_connected:
            return

        logger.debug(f"Unexpected disconnect of {self.device_id}")
        self.emit('disconnect')

    def _on_background_exception(self, error: Exception):
        self.emit('error', TransportError(str(error) or type(error).__name__))


class IotHubTransport(Transport):
    """Creates device SDK handles for devices"""

    def __init__(self, hub_config=HubConfig, client_factory: Optional[ClientFactory] = None):
        self.hub_config = hub_config
        self.client_factory = client_factory

    def create_handle(self, credential: str, protocol: TransportProtocol) -> IotHubDeviceHandle:
        return IotHubDeviceHandle(
            credential,
            TransportProtocol.from_value(protocol),
            hub_config=self.hub_config,
            client_factory=self.client_factory
        )

