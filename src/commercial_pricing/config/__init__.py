"""Config subpackage - settings and logging."""
from .settings import Settings, get_settings
from .log import get_logger

__all__ = ['Settings', 'get_settings', 'get_logger']
