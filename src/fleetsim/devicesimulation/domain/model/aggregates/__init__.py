from .connection_state import ConnectionState
from .device_identity import DeviceIdentity
from .device_roster import DeviceRoster
from .device_stats import DeviceStats
from .reading import Reading

__all__ = ['ConnectionState', 'DeviceIdentity', 'DeviceRoster', 'DeviceStats', 'Reading']
