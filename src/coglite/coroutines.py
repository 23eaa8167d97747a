"""
Explicit three-operation interface over resumable computations.

A coroutine is anything that can be advanced with a value, have an error injected at
its current suspension point, or be forced to terminate early. Python generators
already implement the first two through `send` and `throw`; `CoroutineHandle` adds
the third and a uniform `Step` result for all of them.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from collections.abc import Generator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from typing_extensions import override

from coglite.utils import build_repr


@dataclass(frozen=True)
class Step:
    """Outcome of advancing a coroutine once."""

    value: Any
    """Value produced at a suspension point, or the final value if `done`."""

    done: bool
    """True when the coroutine has terminated."""


@runtime_checkable
class Coroutine(Protocol):
    """Capabilities the driver needs from a resumable computation."""

    def advance(self, value: Any = None) -> Step:
        """Resume with `value` sent into the last suspension point."""
        ...

    def throw_into(self, error: BaseException) -> Step:
        """Raise `error` at the last suspension point."""
        ...

    def force_return(self, value: Any = None) -> Step:
        """Terminate early, treating `value` as the final value."""
        ...


class ForcedReturn(BaseException):
    """
    Raised inside a generator at its suspension point when it is forced to return.

    Derives from BaseException so that ``except Exception`` clauses in coroutine bodies
    do not intercept it, while ``finally`` blocks still run.
    """

    def __init__(self, value: Any = None):
        super().__init__(value)
        self.value = value


class CoroutineHandle(Coroutine):
    """
    Wraps a generator object in the `Coroutine` interface.

    Once the generator terminates, `advance` keeps answering ``Step(None, done=True)``
    and `force_return` answers ``Step(value, done=True)`` without touching the generator
    again. `throw_into` on a terminated generator raises the injected error.

    Args:
        generator: A generator object, typically fresh from calling a generator function.
    """

    def __init__(self, generator: Generator[Any, Any, Any]):
        if not inspect.isgenerator(generator):
            raise TypeError(f"Expected a generator object, got {type(generator).__name__!r}.")
        self._generator = generator
        self._done = False

    def __repr__(self) -> str:
        name = repr(self._generator.__qualname__)
        return build_repr("CoroutineHandle", name, kwargs={"state": self.state})

    @property
    def generator(self) -> Generator[Any, Any, Any]:
        """The underlying generator object."""
        return self._generator

    @property
    def done(self) -> bool:
        """True once the coroutine has terminated."""
        return self._done

    @property
    def state(self) -> str:
        """One of ``created``, ``suspended``, ``running`` or ``closed``."""
        return inspect.getgeneratorstate(self._generator).removeprefix("GEN_").lower()

    @override
    def advance(self, value: Any = None) -> Step:
        if self._done:
            return Step(None, True)
        if inspect.getgeneratorstate(self._generator) == inspect.GEN_CREATED:
            # A fresh generator has no suspension point to receive a value yet.
            value = None
        return self._resume(self._generator.send, value)

    @override
    def throw_into(self, error: BaseException) -> Step:
        if self._done:
            raise error
        return self._resume(self._generator.throw, error)

    @override
    def force_return(self, value: Any = None) -> Step:
        if self._done:
            return Step(value, True)
        if inspect.getgeneratorstate(self._generator) == inspect.GEN_CREATED:
            self._generator.close()
            self._done = True
            return Step(value, True)
        return self._resume(self._generator.throw, ForcedReturn(value))

    def _resume(self, method: Callable[[Any], Any], payload: Any) -> Step:
        try:
            produced = method(payload)
        except StopIteration as stop:
            self._done = True
            return Step(stop.value, True)
        except ForcedReturn as forced:
            self._done = True
            return Step(forced.value, True)
        except BaseException:
            # "generator already executing" leaves the generator alive
            self._done = inspect.getgeneratorstate(self._generator) == inspect.GEN_CLOSED
            raise
        return Step(produced, False)
