from coglite.plugins.default import LoggingPlugin
from coglite.plugins.default import get_logger

from .hooks.markers import hook_impl

__all__ = [
    "hook_impl",
    "LoggingPlugin",
    "get_logger",
]
