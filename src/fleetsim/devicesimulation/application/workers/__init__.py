from .publish_loop import PublishLoop

__all__ = ['PublishLoop']
