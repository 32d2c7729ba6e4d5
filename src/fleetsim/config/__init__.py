from .app_config import AppConfig
from .hub_config import HubConfig
from .simulation_config import SimulationConfig

__all__ = ['AppConfig', 'HubConfig', 'SimulationConfig']
