from .device_controller import DeviceController

__all__ = ['DeviceController']
