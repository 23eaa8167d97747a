from .logging import LoggingPlugin
from .logging import get_logger

__all__ = ["LoggingPlugin", "get_logger"]
