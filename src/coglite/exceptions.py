"""
Centralized exception classes for the coglite library.

All coglite-specific exceptions inherit from CogliteError for easy catching.
"""


class CogliteError(Exception):
    """Base exception for all coglite errors."""


class InvalidCoroutineError(CogliteError):
    """Raised when a drive is started with something that cannot produce a coroutine."""


class UnsupportedYieldError(CogliteError):
    """Raised when a coroutine yields a value of a shape the driver cannot wait on."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Cannot wait on a yielded {type(value).__name__!r}. You may only yield plain "
            "values, awaitables, futures, generators, generator functions, lists, tuples "
            "or dicts of those."
        )


class PropagatedBodyError(CogliteError):
    """Raised when a coroutine body lets an error escape."""

    def __init__(self, error: BaseException):
        self.error = error
        super().__init__(f"{type(error).__name__}: {error}")
        self.__cause__ = error


class NestingDepthError(CogliteError):
    """Raised when nested drives exceed the configured maximum depth."""
