"""Driver that runs generator-based coroutines to completion on an asyncio event loop."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
import weakref
from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import TYPE_CHECKING, Any, ParamSpec
from uuid import UUID
from uuid import uuid4

from typing_extensions import Self

if TYPE_CHECKING:
    from pluggy import PluginManager

from coglite.context import reset_current_driver
from coglite.context import set_current_driver
from coglite.coroutines import Coroutine
from coglite.coroutines import CoroutineHandle
from coglite.coroutines import Step
from coglite.exceptions import CogliteError
from coglite.exceptions import InvalidCoroutineError
from coglite.exceptions import NestingDepthError
from coglite.exceptions import PropagatedBodyError
from coglite.settings import CogliteSettings
from coglite.settings import get_global_settings
from coglite.suspension import classify
from coglite.suspension import normalize
from coglite.utils import build_repr
from coglite.utils import callable_name

logger = logging.getLogger(__name__)

P = ParamSpec("P")

# Coroutines currently owned by an in-flight driver.
_OWNED: weakref.WeakSet[Any] = weakref.WeakSet()


class StepMode(Enum):
    """How a coroutine is advanced."""

    RESUME = "resume"
    THROW = "throw"
    RETURN = "return"


# region API


def drive(coroutine_factory: Any, /, *args: Any, **kwargs: Any) -> DriveFuture:
    """
    Drive a coroutine to completion on the running event loop.

    The body runs synchronously up to its first suspension point; every later step is
    scheduled by the event loop. Errors never escape from this call: they are delivered
    through the returned future.

    Args:
        coroutine_factory: A generator function (or any callable returning a generator or
            `Coroutine`). A generator object may be passed directly when there are no
            arguments.
        *args: Positional arguments for the factory.
        **kwargs: Keyword arguments for the factory.

    Returns:
        Future resolving with the coroutine's return value. It fails with
        `PropagatedBodyError` if the body raises, or `InvalidCoroutineError` if the
        factory does not produce a coroutine.

    Examples:
        >>> import asyncio
        >>> def calculate(v1, v2):
        ...     total = yield asyncio.sleep(0.01, result=v1 + v2)
        ...     return total
        >>> async def main():
        ...     return await drive(calculate, 1, 2)
        >>> asyncio.run(main())
        3
    """
    return Driver.create(coroutine_factory, args, kwargs).start()


def run(coroutine_factory: Any, /, *args: Any, **kwargs: Any) -> Any:
    """
    Drive a coroutine to completion from synchronous code.

    Starts a fresh event loop with `asyncio.run()`. For use inside async code, call
    `drive()` instead.

    Returns:
        The coroutine's return value.

    Raises:
        PropagatedBodyError: If the coroutine body raised.
        InvalidCoroutineError: If the factory did not produce a coroutine.

    Examples:
        >>> def double(x):
        ...     value = yield x
        ...     return value * 2
        >>> run(double, 21)
        42
    """

    async def _main() -> Any:
        return await drive(coroutine_factory, *args, **kwargs)

    return asyncio.run(_main())


def wrap(coroutine_factory: Callable[P, Any]) -> Callable[P, DriveFuture]:
    """
    Turn a generator function into a function that drives it.

    Examples:
        >>> @wrap
        ... def add(x, y):
        ...     return (yield x) + (yield y)
        >>> async def main():
        ...     return await add(1, 2)
        >>> asyncio.run(main())
        3
    """

    @functools.wraps(coroutine_factory)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> DriveFuture:
        return drive(coroutine_factory, *args, **kwargs)

    wrapper.__coglite_factory__ = coroutine_factory  # type: ignore[attr-defined]
    return wrapper


# region Internal


class DriveFuture(asyncio.Future):
    """Result of a drive, with the ability to force the coroutine to return early."""

    def __init__(self, driver: Driver, *, loop: asyncio.AbstractEventLoop):
        super().__init__(loop=loop)
        self._driver = driver

    @property
    def driver(self) -> Driver:
        """The driver producing this result."""
        return self._driver

    def force_return(self, value: Any = None) -> bool:
        """Force the coroutine to return `value`. See `Driver.force_return()`."""
        return self._driver.force_return(value)


@dataclass(repr=False, eq=False)
class Driver:
    """
    Steps one coroutine until it terminates.

    After each suspension the yielded value is normalized into a future (see
    `coglite.suspension`); the future's outcome is sent back in (success) or raised at
    the suspension point (failure). The driver exclusively owns its coroutine while the
    drive is in flight.

    Use `Driver.create()` to build one from a factory; `start()` begins the drive.
    """

    name: str
    """Name of the coroutine factory, used in logs and hooks."""

    coroutine: Coroutine | None = None
    """The coroutine being driven (None if it could not be created)."""

    depth: int = 0
    """Nesting depth: 0 for a top-level drive, parent depth + 1 for yielded coroutines."""

    settings: CogliteSettings = field(default_factory=get_global_settings)
    """Settings captured when the driver was created."""

    hooks: list[Any] | None = None
    """Optional list of hook implementations for this drive only."""

    id: UUID = field(default_factory=uuid4)
    """Unique identifier of this drive."""

    _setup_error: CogliteError | None = field(default=None, init=False)
    _hook_manager: PluginManager | None = field(default=None, init=False)
    _result: DriveFuture | None = field(default=None, init=False)
    _pending: asyncio.Future[Any] | None = field(default=None, init=False)
    _forcing: bool = field(default=False, init=False)
    _owns_coroutine: bool = field(default=False, init=False)
    _start_time: float = field(default=0.0, init=False)

    @classmethod
    def create(
        cls,
        coroutine_factory: Any,
        args: tuple[Any, ...] = (),
        kwargs: Mapping[str, Any] | None = None,
        *,
        hooks: list[Any] | None = None,
        settings: CogliteSettings | None = None,
        depth: int = 0,
        hook_manager: PluginManager | None = None,
    ) -> Self:
        """
        Build a driver by instantiating the coroutine from its factory.

        Failures to instantiate are recorded on the driver and delivered through the result
        future once the drive starts, so this method only raises `TypeError` for invalid
        hooks.

        Args:
            coroutine_factory: Generator function, callable returning a coroutine, or a
                coroutine object.
            args: Positional arguments for the factory.
            kwargs: Keyword arguments for the factory.
            hooks: Extra hook implementations for this drive (combined with global hooks).
            settings: Settings to use instead of the global settings.
            depth: Nesting depth of the new drive.
            hook_manager: Existing hook manager to share (used by nested drives).

        Returns:
            A driver ready to `start()`.
        """
        driver = cls(
            name=callable_name(coroutine_factory),
            depth=depth,
            settings=settings or get_global_settings(),
            hooks=hooks,
        )
        driver._hook_manager = hook_manager
        driver._get_hook_manager()

        try:
            driver.coroutine = _instantiate(coroutine_factory, args, kwargs or {})
        except CogliteError as e:
            driver._setup_error = e
        except Exception as e:
            driver._setup_error = PropagatedBodyError(e)
        return driver

    def __repr__(self) -> str:
        if self._result is None:
            state = "pending"
        elif self._result.done():
            state = "finished"
        else:
            state = "running"
        return build_repr("Driver", repr(self.name), kwargs={"depth": self.depth, "state": state})

    @property
    def result(self) -> DriveFuture | None:
        """Result future, available once the drive has started."""
        return self._result

    def start(self) -> DriveFuture:
        """
        Begin the drive on the running event loop.

        Returns:
            Future for the drive's outcome.

        Raises:
            RuntimeError: If the driver was already started or no event loop is running.
        """
        if self._result is not None:
            raise RuntimeError(f"{self!r} has already been started.")

        loop = asyncio.get_running_loop()
        self._result = DriveFuture(self, loop=loop)
        self._result.add_done_callback(self._on_result_done)
        self._start_time = time.perf_counter()

        try:
            self._get_hook_manager().hook.before_drive(
                drive_id=self.id, name=self.name, depth=self.depth
            )
        except Exception as e:
            self._finish(error=e)
            return self._result

        max_depth = self.settings.max_nesting_depth
        if self._setup_error is not None:
            self._finish(error=self._setup_error)
        elif max_depth is not None and self.depth > max_depth:
            self._finish(
                error=NestingDepthError(
                    f"Drive of {self.name!r} exceeds the maximum nesting depth of {max_depth}."
                )
            )
        elif not self._acquire():
            self._finish(
                error=InvalidCoroutineError(f"{self.name!r} is already being driven.")
            )
        else:
            self._step(StepMode.RESUME, None)
        return self._result

    def force_return(self, value: Any = None) -> bool:
        """
        Request early termination of the coroutine with `value` as its final value.

        The future the coroutine is waiting on is detached, not cancelled. On the next
        loop iteration the coroutine is forced to return at its suspension point, so its
        ``finally`` blocks run; if they yield, the driver keeps stepping them to the end.
        Requests made once a forced return is under way are ignored.

        Returns:
            False if the drive had already finished, True otherwise.
        """
        result = self._result
        if result is None:
            raise RuntimeError(f"{self!r} has not been started.")
        if result.done():
            return False
        if self._forcing:
            return True

        self._forcing = True
        self._pending = None
        try:
            self._get_hook_manager().hook.on_force_return(
                drive_id=self.id, name=self.name, value=value
            )
        except Exception as e:
            self._finish(error=e)
            return True
        result.get_loop().call_soon(self._step, StepMode.RETURN, value)
        return True

    def _get_hook_manager(self) -> PluginManager:
        """Get hook manager for this drive."""
        from coglite.plugins.manager import create_hook_manager_with_plugins
        from coglite.plugins.manager import get_hook_manager

        if self._hook_manager is None:
            if self.hooks:
                self._hook_manager = create_hook_manager_with_plugins(self.hooks)
            else:
                self._hook_manager = get_hook_manager()
        return self._hook_manager

    def _step(self, mode: StepMode, payload: Any) -> None:
        """Advance the coroutine once and wait on whatever it yields next."""
        result = self._result
        assert result is not None and self.coroutine is not None
        if result.done():
            return
        if mode is StepMode.RETURN:
            self._pending = None

        hook = self._get_hook_manager().hook
        if self.settings.enable_step_hooks:
            try:
                hook.on_resume(drive_id=self.id, name=self.name, mode=mode, payload=payload)
            except Exception as e:
                self._finish(error=e)
                return

        token = set_current_driver(self)
        try:
            step = self._advance(mode, payload)
        except asyncio.CancelledError:
            result.cancel()
            return
        except CogliteError as e:
            self._finish(error=e)
            return
        except Exception as e:
            self._finish(error=PropagatedBodyError(e))
            return
        finally:
            reset_current_driver(token)

        if step.done:
            self._finish(value=step.value)
            return

        loop = result.get_loop()
        try:
            kind = classify(step.value)
            awaitable = normalize(step.value, self._spawn, loop=loop, kind=kind)
        except Exception as e:
            # Raised at the suspension point on the next tick, giving the body a chance
            # to handle it.
            logger.debug(f"{self.name}: cannot wait on yielded value: {e}")
            loop.call_soon(self._step, StepMode.THROW, e)
            return

        logger.debug(f"{self.name}: suspended on {kind.value}")
        self._pending = awaitable
        awaitable.add_done_callback(self._on_settled)

        if self.settings.enable_step_hooks:
            try:
                hook.on_suspend(drive_id=self.id, name=self.name, kind=kind, value=step.value)
            except Exception as e:
                self._finish(error=e)

    def _advance(self, mode: StepMode, payload: Any) -> Step:
        assert self.coroutine is not None
        if mode is StepMode.RESUME:
            return self.coroutine.advance(payload)
        if mode is StepMode.THROW:
            return self.coroutine.throw_into(payload)
        return self.coroutine.force_return(payload)

    def _on_settled(self, future: asyncio.Future[Any]) -> None:
        """Feed the outcome of the awaited future back into the coroutine."""
        if future is not self._pending:
            # Detached by force_return(); mark any error as retrieved.
            if not future.cancelled():
                future.exception()
            return
        self._pending = None

        if future.cancelled():
            self._step(StepMode.THROW, asyncio.CancelledError())
            return
        error = future.exception()
        if error is None:
            self._step(StepMode.RESUME, future.result())
        elif isinstance(error, PropagatedBodyError):
            self._step(StepMode.THROW, error.error)
        else:
            self._step(StepMode.THROW, error)

    def _spawn(self, coroutine: Any) -> DriveFuture:
        """Start a nested drive for a yielded coroutine."""
        child = Driver.create(
            coroutine,
            settings=self.settings,
            depth=self.depth + 1,
            hook_manager=self._get_hook_manager(),
        )
        return child.start()

    def _finish(self, value: Any = None, error: BaseException | None = None) -> None:
        """Deliver the drive's outcome, exactly once."""
        result = self._result
        assert result is not None
        self._pending = None
        self._release()
        if result.done():
            return

        duration = time.perf_counter() - self._start_time
        hook = self._get_hook_manager().hook
        try:
            if error is None:
                hook.after_drive(drive_id=self.id, name=self.name, result=value, duration=duration)
            else:
                hook.on_drive_error(
                    drive_id=self.id, name=self.name, error=error, duration=duration
                )
        except Exception as hook_error:
            error = hook_error

        if error is None:
            logger.debug(f"{self.name}: completed in {duration:.3f}s")
            result.set_result(value)
        else:
            logger.debug(f"{self.name}: failed after {duration:.3f}s with {error!r}")
            result.set_exception(error)

    def _on_result_done(self, result: asyncio.Future[Any]) -> None:
        if result.cancelled():
            self._pending = None
            self._release()

    def _ownership_key(self) -> Any:
        if isinstance(self.coroutine, CoroutineHandle):
            return self.coroutine.generator
        return self.coroutine

    def _acquire(self) -> bool:
        key = self._ownership_key()
        try:
            if key in _OWNED:
                return False
            _OWNED.add(key)
            self._owns_coroutine = True
        except TypeError:  # unhashable or not weak-referenceable, ownership cannot be tracked
            pass
        return True

    def _release(self) -> None:
        if self._owns_coroutine:
            _OWNED.discard(self._ownership_key())
            self._owns_coroutine = False


def _instantiate(
    coroutine_factory: Any, args: tuple[Any, ...], kwargs: Mapping[str, Any]
) -> Coroutine:
    """Produce a coroutine from a factory (or accept a ready-made one)."""
    if inspect.isgenerator(coroutine_factory) or (
        not isinstance(coroutine_factory, type) and isinstance(coroutine_factory, Coroutine)
    ):
        if args or kwargs:
            raise InvalidCoroutineError(
                f"Cannot pass arguments to the already created coroutine "
                f"{callable_name(coroutine_factory)!r}."
            )
        produced = coroutine_factory
    elif callable(coroutine_factory):
        produced = coroutine_factory(*args, **kwargs)
    else:
        raise InvalidCoroutineError(
            f"Expected a generator function or generator, got "
            f"{type(coroutine_factory).__name__!r}."
        )

    if inspect.isgenerator(produced):
        return CoroutineHandle(produced)
    if isinstance(produced, Coroutine):
        return produced
    if inspect.iscoroutine(produced):
        produced.close()  # never awaited
    raise InvalidCoroutineError(
        f"{callable_name(coroutine_factory)!r} did not produce a coroutine "
        f"(got {type(produced).__name__!r}). Use a generator function."
    )
