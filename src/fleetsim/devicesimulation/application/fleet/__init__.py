from .fleet_runner import FleetRunner, default_generator_factory
from .simulated_device import SimulatedDevice

__all__ = ['FleetRunner', 'SimulatedDevice', 'default_generator_factory']
