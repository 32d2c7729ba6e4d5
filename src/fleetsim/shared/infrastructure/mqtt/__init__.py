from .connection_string import (
    ConnectionString,
    ConnectionStringError,
    build_connection_string,
    generate_sas_token
)
from .iothub_transport import IotHubDeviceHandle, IotHubTransport
from .mqtt_transport import MqttDeviceHandle, MqttTransport
from .transport import (
    ConnectError,
    ReceivedMessage,
    SendError,
    Transport,
    TransportError,
    TransportHandle,
    TransportProtocol
)
from .transport_factory import create_transport

__all__ = [
    'ConnectionString',
    'ConnectionStringError',
    'build_connection_string',
    'generate_sas_token',
    'IotHubDeviceHandle',
    'IotHubTransport',
    'MqttDeviceHandle',
    'MqttTransport',
    'ConnectError',
    'ReceivedMessage',
    'SendError',
    'Transport',
    'TransportError',
    'TransportHandle',
    'TransportProtocol',
    'create_transport'
]
