from __future__ import annotations

import threading
from dataclasses import dataclass

_GLOBAL_COGLITE_SETTINGS: CogliteSettings | None = None
_SETTINGS_LOCK = threading.RLock()


@dataclass(frozen=True)
class CogliteSettings:
    """Configuration settings for coglite."""

    max_nesting_depth: int | None = None
    """
    Maximum depth of nested drives (a coroutine yielding a coroutine yielding ...).

    The outermost drive has depth 0. If None, nesting is unlimited.
    """

    enable_step_hooks: bool = True
    """
    Whether the per-step `on_suspend` and `on_resume` hooks are fired.

    Lifecycle hooks (`before_drive`, `after_drive`, ...) always fire.
    """


def get_global_settings() -> CogliteSettings:
    """
    Get the global coglite settings instance (thread-safe).

    If no global settings have been set, returns a default instance.
    """
    with _SETTINGS_LOCK:
        global _GLOBAL_COGLITE_SETTINGS
        if _GLOBAL_COGLITE_SETTINGS is None:
            _GLOBAL_COGLITE_SETTINGS = CogliteSettings()
        return _GLOBAL_COGLITE_SETTINGS


def set_global_settings(settings: CogliteSettings) -> None:
    """
    Set the global coglite settings instance (thread-safe).

    Note: Drives capture the global settings when they are created. Changing settings
    does not affect drives that are already in flight.

    Args:
        settings (CogliteSettings): Settings to set as global.
    """
    with _SETTINGS_LOCK:
        global _GLOBAL_COGLITE_SETTINGS
        _GLOBAL_COGLITE_SETTINGS = settings
