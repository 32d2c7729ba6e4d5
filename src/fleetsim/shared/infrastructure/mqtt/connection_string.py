from dataclasses import dataclass

from azure.iot.device.common.auth import connection_string as cs
from azure.iot.device.common.auth import sastoken as st
from azure.iot.device.common.auth import signing_mechanism as auth


class ConnectionStringError(ValueError):
    """Device connection string is malformed"""


@dataclass(frozen=True)
class ConnectionString:
    """
    Device connection string

    Format: HostName=<hub>.azure-devices.net;DeviceId=<id>;SharedAccessKey=<key>

    Parsing and validation are done by the IoT Hub device SDK.
    """

    host_name: str
    device_id: str
    shared_access_key: str

    @classmethod
    def parse(cls, value: str) -> 'ConnectionString':
        """
        Parse a symmetric key connection string

        Raises:
            ConnectionStringError: If a part is missing or malformed
        """
        if not value:
            raise ConnectionStringError("Connection string is empty")

        try:
            parsed = cs.ConnectionString(value)
        except ValueError as e:
            raise ConnectionStringError(str(e)) from e

        if not parsed.get(cs.DEVICE_ID) or not parsed.get(cs.SHARED_ACCESS_KEY):
            raise ConnectionStringError(
                "Connection string must carry a DeviceId and a SharedAccessKey"
            )

        return cls(
            host_name=parsed[cs.HOST_NAME],
            device_id=parsed[cs.DEVICE_ID],
            shared_access_key=parsed[cs.SHARED_ACCESS_KEY]
        )

    def resource_uri(self) -> str:
        return f"{self.host_name}/devices/{self.device_id}"

    def __str__(self) -> str:
        return build_connection_string(self.host_name, self.device_id, self.shared_access_key)


def build_connection_string(host_name: str, device_id: str, access_key: str) -> str:
    """Build a device connection string from its parts"""
    return f"HostName={host_name};DeviceId={device_id};SharedAccessKey={access_key}"


def generate_sas_token(resource_uri: str, key: str, ttl_seconds: int) -> str:
    """
    Generate a shared access signature token

    Args:
        resource_uri: Resource the token grants access to (host/devices/id)
        key: Base64 encoded shared access key
        ttl_seconds: Token validity in seconds

    Returns:
        "SharedAccessSignature sr=...&sig=...&se=..."

    Raises:
        ConnectionStringError: If the key cannot sign a token
    """
    try:
        signing_mechanism = auth.SymmetricKeySigningMechanism(key=key)
        token = st.RenewableSasToken(resource_uri, signing_mechanism, ttl=ttl_seconds)
    except ValueError as e:
        raise ConnectionStringError(f"Invalid shared access key: {e}") from e
    except st.SasTokenError as e:
        raise ConnectionStringError(f"Could not create a SAS token: {e}") from e

    return str(token)
