from .health_controller import HealthController

__all__ = ['HealthController']
