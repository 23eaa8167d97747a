"""
Logging plugin and drive-aware loggers.

`LoggingPlugin` writes drive lifecycle records through Python's standard logging system,
and `get_logger()` hands coroutine bodies a logger that tags every record with the drive
it was emitted from.

Example:
    >>> from coglite import drive
    >>> from coglite.plugins import LoggingPlugin, get_logger
    >>> from coglite.plugins.manager import register_hooks
    >>>
    >>> def fetch(x):
    ...     logger = get_logger(__name__)
    ...     logger.info(f"Fetching {x}")
    ...     value = yield x
    ...     return value * 2
    >>>
    >>> register_hooks(LoggingPlugin())
"""

import logging
from typing import Any, MutableMapping
from uuid import UUID

from coglite.context import get_current_driver

from ..hooks.markers import hook_impl

DEFAULT_LOGGER_NAME = "coglite.drives"
DEFAULT_LOGGER_FORMAT = "%(asctime)s - Drive: %(coglite_drive_name)s - %(levelname)s - %(message)s"


class DriveLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically injects drive context into log records.

    This adapter adds `coglite_drive_id` and `coglite_drive_name` to the 'extra' dict of all
    log records, making them available for use in log formatters (e.g.,
    "%(coglite_drive_name)s").

    The context is looked up when the record is emitted, so one adapter can be shared by
    several coroutines.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, dict[str, Any]]:
        """
        Process log call to inject drive context.

        Args:
            msg: Log message
            kwargs: Keyword arguments from log call

        Returns:
            Tuple of (message, modified kwargs with drive context)
        """
        extra = dict(kwargs.get("extra") or {})
        driver = get_current_driver()
        if driver is not None:
            extra.setdefault("coglite_drive_id", str(driver.id))
            extra.setdefault("coglite_drive_name", driver.name)
        kwargs["extra"] = extra
        return msg, dict(kwargs)


class LoggingPlugin:
    """
    Plugin that logs drive lifecycle events.

    Starts, completions and forced returns are logged at `level`; failures are always
    logged at ERROR with the exception attached.

    Args:
        level: Level for non-error lifecycle records.
        logger_name: Name of the logger records are written to.

    Examples:
        >>> import logging
        >>> from coglite.plugins import LoggingPlugin
        >>> from coglite.plugins.manager import register_hooks
        >>> register_hooks(LoggingPlugin(level=logging.INFO))
    """

    def __init__(self, level: int = logging.DEBUG, logger_name: str = DEFAULT_LOGGER_NAME):
        self._level = level
        self._logger = logging.getLogger(logger_name)

    @hook_impl
    def before_drive(self, drive_id: UUID, name: str, depth: int) -> None:
        self._logger.log(
            self._level, f"Drive started (depth {depth})", extra=_extra(drive_id, name)
        )

    @hook_impl
    def after_drive(self, drive_id: UUID, name: str, result: Any, duration: float) -> None:
        self._logger.log(
            self._level, f"Drive completed in {duration:.3f}s", extra=_extra(drive_id, name)
        )

    @hook_impl
    def on_drive_error(
        self, drive_id: UUID, name: str, error: BaseException, duration: float
    ) -> None:
        self._logger.error(
            f"Drive failed after {duration:.3f}s: {error}",
            exc_info=(type(error), error, error.__traceback__),
            extra=_extra(drive_id, name),
        )

    @hook_impl
    def on_force_return(self, drive_id: UUID, name: str, value: Any) -> None:
        self._logger.log(self._level, "Drive forced to return", extra=_extra(drive_id, name))


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """
    Get a logger that tags records with the drive they were emitted from.

    Args:
        name: Logger name for code organization. If None, uses "coglite.drives". Typically
            use `__name__` for module-based naming.

    Returns:
        LoggerAdapter that adds `coglite_drive_id` and `coglite_drive_name` to records
        emitted while a coroutine body is being stepped.

    Examples:
        >>> from coglite.plugins import get_logger
        >>> def worker():
        ...     logger = get_logger(__name__)
        ...     logger.info("Working")  # record carries coglite_drive_name="worker"
        ...     yield None
    """
    return DriveLoggerAdapter(logging.getLogger(name or DEFAULT_LOGGER_NAME), {})


def _extra(drive_id: UUID, name: str) -> dict[str, str]:
    return {"coglite_drive_id": str(drive_id), "coglite_drive_name": name}
