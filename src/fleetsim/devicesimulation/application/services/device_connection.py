import logging
import threading
from datetime import datetime
from typing import Optional

from fleetsim.devicesimulation.domain.model.aggregates import (
    ConnectionState,
    DeviceIdentity,
    DeviceStats
)
from fleetsim.shared.infrastructure.mqtt import (
    ReceivedMessage,
    Transport,
    TransportError,
    TransportHandle
)
from .fleet_settings import FleetSettings

logger = logging.getLogger(__name__)


class DeviceConnection:
    """
    Connection lifecycle of one simulated device

    Responsibilities:
        - Open a transport handle and track the connection state
        - Log and acknowledge cloud-to-device messages
        - Reconnect with a fresh handle after an unsolicited disconnect
        - Publish payloads handed over by the publish loop

    Every handle gets a new epoch. Callbacks bound to a handle carry its epoch
    and do nothing once the device has moved on to another handle, so late
    results of a replaced connection are dropped.

    Transport callbacks arrive on the transport's threads while ticks run on
    the publish loop thread; state, epoch and stats are guarded by one lock.
    Nothing here raises to the caller: outcomes are reported via logs and
    the state flag.
    """

    def __init__(
            self,
            identity: DeviceIdentity,
            transport: Transport,
            settings: Optional[FleetSettings] = None
    ):
        self.identity = identity
        self.name = identity.device_id
        self.transport = transport
        self.settings = settings or FleetSettings()

        self.state = ConnectionState.DISCONNECTED
        self.handle: Optional[TransportHandle] = None
        self.epoch = 0
        self.stats = DeviceStats()

        # Set by attach_publish_loop(); cancelled on disconnect
        self.publish_loop = None

        self._lock = threading.RLock()
        self._reconnect_timer: Optional[threading.Timer] = None
        self._stopped = False

    def attach_publish_loop(self, publish_loop):
        """Bind the publish loop this connection cancels on disconnect"""
        self.publish_loop = publish_loop

    # ========================================
    # Lifecycle
    # ========================================

    def connect(self):
        """
        Open a new transport handle

        Returns immediately; the result arrives through the open callback.
        """
        with self._lock:
            self._stopped = False
            self.epoch += 1
            epoch = self.epoch
            self.state = ConnectionState.CONNECTING
            self.stats.in_flight = 0

            try:
                handle = self.transport.create_handle(
                    self.identity.credential,
                    self.identity.protocol
                )
            except (TransportError, ValueError) as e:
                self.handle = None
                self.state = ConnectionState.FAILED
                logger.error(f"[{self.name}] Could not connect: {e}")
                return

            self.handle = handle

        logger.info(f"[{self.name}] Connecting ({self.identity.protocol.value})...")
        handle.open(self._open_callback(epoch, handle))

    def disconnect(self):
        """
        Stop the device for good (process shutdown)

        Cancels the publish loop and any pending reconnect, closes the handle
        and bumps the epoch so late callbacks are ignored.
        """
        with self._lock:
            self._stopped = True

            if self._reconnect_timer is not None:
                self._reconnect_timer.cancel()
                self._reconnect_timer = None

            if self.publish_loop is not None:
                self.publish_loop.stop()

            handle = self.handle
            self.handle = None
            self.epoch += 1
            self.state = ConnectionState.DISCONNECTED

        if handle is not None:
            handle.remove_all_listeners()
            handle.close()

        logger.info(f"[{self.name}] Stopped")

    def get_state(self) -> ConnectionState:
        with self._lock:
            return self.state

    def is_connected(self) -> bool:
        return self.get_state() is ConnectionState.CONNECTED

    # ========================================
    # Publishing
    # ========================================

    def publish(self, payload: str, schema: Optional[str] = None) -> bool:
        """
        Hand a payload to the current handle (fire-and-forget)

        Args:
            payload: Serialized reading (JSON)
            schema: Optional message schema tag

        Returns:
            True if the send was handed to the transport, False if the device
            is not connected. The send result itself is only logged.
        """
        with self._lock:
            if self.state is not ConnectionState.CONNECTED or self.handle is None:
                return False

            handle = self.handle
            epoch = self.epoch
            self.stats.in_flight += 1

        properties = {'$$contentType': 'json'}
        if schema:
            properties['$$MessageSchema'] = schema
            logger.info(f"[{self.name}] Sending {schema}: {payload}")
        else:
            logger.info(f"[{self.name}] Sending message: {payload}")

        handle.send(payload, properties, self._send_callback(epoch))
        return True

    # ========================================
    # Transport callbacks
    # ========================================

    def _open_callback(self, epoch: int, handle: TransportHandle):
        def on_open(error: Optional[Exception]):
            with self._lock:
                stale = epoch != self.epoch

                if not stale and error is not None:
                    self.state = ConnectionState.FAILED

                # An explicit disconnect may have raced in
                connected = (
                    not stale
                    and error is None
                    and self.state is ConnectionState.CONNECTING
                )

                if connected:
                    self.state = ConnectionState.CONNECTED

                    handle.on('message', self._guarded(epoch, lambda message: self._on_message(handle, message)))
                    handle.on('error', self._guarded(epoch, self._on_error))
                    handle.on('disconnect', self._guarded(epoch, lambda: self._on_disconnect(handle)))

            if connected:
                logger.info(f"[{self.name}] Client connected")
                return

            if stale:
                logger.debug(f"[{self.name}] Closing connection opened for a replaced epoch")
            elif error is not None:
                logger.error(f"[{self.name}] Could not connect: {error}")

            # A handle that is not the live connection never stays open
            handle.close()

        return on_open

    def _guarded(self, epoch: int, handler):
        """Wrap an event handler so it only runs for the current handle"""
        def guarded(*args):
            if epoch != self.epoch:
                logger.debug(f"[{self.name}] Ignoring event from a replaced connection")
                return
            handler(*args)

        return guarded

    def _on_message(self, handle: TransportHandle, message: ReceivedMessage):
        logger.info(f"[{self.name}] Id: {message.message_id} Body: {message.body}")

        with self._lock:
            self.stats.messages_received += 1

        handle.acknowledge(message, self._result_logger('completed'))

    def _on_error(self, error: Exception):
        logger.error(f"[{self.name}] {error}")

    def _on_disconnect(self, handle: TransportHandle):
        with self._lock:
            if handle is not self.handle:
                return

            if self.publish_loop is not None:
                self.publish_loop.stop()

            self.state = ConnectionState.DISCONNECTED
            self.stats.reconnects += 1

        logger.info(f"[{self.name}] Disconnected.")

        handle.remove_all_listeners()
        handle.close()

        self._schedule_reconnect()

    def _send_callback(self, epoch: int):
        def on_sent(error: Optional[Exception], result):
            with self._lock:
                if epoch != self.epoch:
                    logger.debug(f"[{self.name}] Ignoring send result of a replaced connection")
                    return

                self.stats.in_flight = max(0, self.stats.in_flight - 1)
                if error is not None:
                    self.stats.send_errors += 1
                else:
                    self.stats.messages_sent += 1
                    self.stats.last_sent_at = datetime.now()

            self._log_result('send', error, result)

        return on_sent

    def _result_logger(self, operation: str):
        def on_result(error: Optional[Exception], result):
            self._log_result(operation, error, result)

        return on_result

    def _log_result(self, operation: str, error: Optional[Exception], result):
        if error is not None:
            logger.error(f"[{self.name}] {operation} error: {error}")
        elif result is not None:
            level = logging.INFO if self.settings.log_send_results else logging.DEBUG
            logger.log(level, f"[{self.name}] {operation} status: {result}")

    # ========================================
    # Reconnect
    # ========================================

    def _schedule_reconnect(self):
        """
        Reconnect with a fresh handle and restart publishing

        Immediate by default, no retry cap. A positive reconnect_delay runs
        the attempt on a timer thread instead.
        """
        delay = self.settings.reconnect_delay

        if delay <= 0:
            self._reconnect()
            return

        logger.info(f"[{self.name}] Reconnecting in {delay}s...")
        with self._lock:
            timer = threading.Timer(delay, self._reconnect)
            timer.daemon = True
            self._reconnect_timer = timer
        timer.start()

    def _reconnect(self):
        with self._lock:
            self._reconnect_timer = None
            if self._stopped or self.state is not ConnectionState.DISCONNECTED:
                return

        self.connect()

        if self.publish_loop is not None:
            self.publish_loop.start()

    def snapshot(self) -> dict:
        """Current state and counters, for the status API"""
        with self._lock:
            return {
                'deviceId': self.name,
                'protocol': self.identity.protocol.value,
                'model': self.identity.model,
                'messageSchema': self.identity.message_schema,
                'state': self.state.value,
                'epoch': self.epoch,
                'stats': self.stats.to_dict()
            }

    def __repr__(self) -> str:
        return f"DeviceConnection({self.name!r}, {self.state.value}, epoch={self.epoch})"
