from enum import Enum


class ConnectionState(Enum):
    """
    Connection status of a simulated device

    disconnected → connecting → connected
    connecting   → failed        (connect error)
    connected    → disconnected  (transport disconnect, then connecting again)
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
