"""Execution context for the coroutine step currently running."""

from __future__ import annotations

from contextvars import ContextVar
from contextvars import Token
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coglite.driver import Driver

_current_driver: ContextVar[Driver | None] = ContextVar("current_driver", default=None)


def set_current_driver(driver: Driver) -> Token[Driver | None]:
    """
    Mark `driver` as the one whose coroutine is being stepped.

    Args:
        driver: Driver about to advance its coroutine.

    Returns:
        Token to pass to `reset_current_driver()` once the step is over.
    """
    return _current_driver.set(driver)


def get_current_driver() -> Driver | None:
    """
    Get the driver whose coroutine is currently executing.

    Returns:
        The driver if called from inside a coroutine body, None otherwise.
    """
    return _current_driver.get()


def reset_current_driver(token: Token[Driver | None]) -> None:
    """Restore the driver that was current before `set_current_driver()`."""
    _current_driver.reset(token)
