from .device_roster_loader import DeviceRosterLoader, RosterError

__all__ = ['DeviceRosterLoader', 'RosterError']
