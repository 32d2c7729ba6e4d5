import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

OpenCallback = Callable[[Optional[Exception]], None]
ResultCallback = Callable[[Optional[Exception], Any], None]


class TransportError(Exception):
    """Base error raised or reported by a transport"""


class ConnectError(TransportError):
    """Opening a transport handle failed or was refused"""


class SendError(TransportError):
    """Publishing a message failed"""


class TransportProtocol(Enum):
    """Transport protocol variants a device can connect with"""
    MQTT = "mqtt"
    MQTT_WS = "mqtt_ws"

    @classmethod
    def from_value(cls, value) -> 'TransportProtocol':
        """
        Resolve a protocol from its name

        Accepts members, values ('mqtt') and names ('MQTT_WS'), case-insensitive.

        Raises:
            ValueError: If the protocol is unknown
        """
        if isinstance(value, cls):
            return value

        normalized = str(value).strip().lower()
        for protocol in cls:
            if normalized in (protocol.value, protocol.name.lower()):
                return protocol

        raise ValueError(f"Unknown transport protocol: {value!r}")


@dataclass
class ReceivedMessage:
    """
    Message delivered by the hub to a device (cloud-to-device)
    """
    message_id: Optional[str]
    data: bytes
    properties: Dict[str, str] = field(default_factory=dict)
    topic: str = ""

    @property
    def body(self) -> str:
        return self.data.decode('utf-8', errors='replace')


class TransportHandle(ABC):
    """
    One connection of one device to the hub

    Results of open/send/acknowledge are delivered through callbacks.
    Unsolicited events are emitted to listeners:
    - 'message'    → listener(ReceivedMessage)
    - 'error'      → listener(Exception)
    - 'disconnect' → listener()
    """

    EVENTS = ('message', 'error', 'disconnect')

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in self.EVENTS}
        self._listeners_lock = threading.Lock()

    def on(self, event: str, listener: Callable):
        """Register a listener for an event"""
        if event not in self._listeners:
            raise ValueError(f"Unknown transport event: {event}")

        with self._listeners_lock:
            self._listeners[event].append(listener)

    def remove_all_listeners(self):
        """Detach every listener from this handle"""
        with self._listeners_lock:
            for listeners in self._listeners.values():
                listeners.clear()

    def listener_count(self, event: str) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args):
        """Call every listener of an event, logging listener failures"""
        with self._listeners_lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Error in '{event}' listener: {e}", exc_info=True)

    @abstractmethod
    def open(self, callback: OpenCallback):
        """Open the connection; callback(None) on success, callback(error) on failure"""

    @abstractmethod
    def send(self, payload: str, properties: Dict[str, str], callback: ResultCallback):
        """Publish a payload with message properties"""

    @abstractmethod
    def acknowledge(self, message: ReceivedMessage, callback: ResultCallback):
        """Complete a received message back to the hub"""

    @abstractmethod
    def close(self):
        """Tear the connection down without emitting 'disconnect'"""


class Transport(ABC):
    """Creates transport handles for devices"""

    @abstractmethod
    def create_handle(self, credential: str, protocol: TransportProtocol) -> TransportHandle:
        """Create an unopened handle for a device credential"""
