from .device_connection import DeviceConnection
from .fleet_settings import FleetSettings

__all__ = ['DeviceConnection', 'FleetSettings']
