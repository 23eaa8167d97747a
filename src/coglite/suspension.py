"""
Classification and normalization of values produced at suspension points.

Every value a coroutine yields is one of a closed set of shapes (see `SuspensionKind`).
Before the coroutine is resumed, the driver collapses whatever shape it got into a
single `asyncio.Future`.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from collections.abc import Mapping
from concurrent.futures import Future as ConcurrentFuture
from enum import Enum
from typing import Any

from coglite.coroutines import Coroutine
from coglite.exceptions import UnsupportedYieldError

SpawnFn = Callable[[Any], "asyncio.Future[Any]"]


class SuspensionKind(Enum):
    """Shapes a yielded value can take."""

    VALUE = "value"
    AWAITABLE = "awaitable"
    COROUTINE = "coroutine"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def is_coroutine(value: Any) -> bool:
    """True for generators, generator functions and `Coroutine` implementations."""
    return (
        inspect.isgenerator(value)
        or inspect.isgeneratorfunction(value)
        or isinstance(value, Coroutine)
    )


def is_awaitable(value: Any) -> bool:
    """True for asyncio futures, native awaitables and concurrent futures."""
    return (
        asyncio.isfuture(value)
        or inspect.isawaitable(value)
        or isinstance(value, ConcurrentFuture)
    )


def classify(value: Any) -> SuspensionKind:
    """
    Determine the shape of a yielded value.

    Sequences and mappings are checked element by element, so an unsupported value
    nested anywhere inside them is reported before any work is started.

    Args:
        value: The value produced at a suspension point.

    Returns:
        The matching `SuspensionKind`.

    Raises:
        UnsupportedYieldError: If the value (or a nested element) cannot be waited on.
    """
    if is_coroutine(value):
        return SuspensionKind.COROUTINE
    if is_awaitable(value):
        return SuspensionKind.AWAITABLE
    if isinstance(value, (list, tuple)):
        for item in value:
            classify(item)
        return SuspensionKind.SEQUENCE
    if isinstance(value, Mapping):
        for item in value.values():
            classify(item)
        return SuspensionKind.MAPPING
    if (
        isinstance(value, (set, frozenset))
        or inspect.isasyncgen(value)
        or inspect.isasyncgenfunction(value)
        or callable(value)
    ):
        raise UnsupportedYieldError(value)
    return SuspensionKind.VALUE


def normalize(
    value: Any,
    spawn: SpawnFn,
    *,
    loop: asyncio.AbstractEventLoop,
    kind: SuspensionKind | None = None,
) -> asyncio.Future[Any]:
    """
    Collapse a yielded value into a single future.

    Args:
        value: The value produced at a suspension point.
        spawn: Starts a nested drive for a coroutine and returns its result future.
        loop: Event loop the returned future belongs to.
        kind: Pre-computed classification of `value`, if the caller already has one.

    Returns:
        A future that settles with the resolved value (or the first error).
    """
    kind = kind or classify(value)

    if kind is SuspensionKind.VALUE:
        future = loop.create_future()
        future.set_result(value)
        return future

    if kind is SuspensionKind.AWAITABLE:
        if isinstance(value, ConcurrentFuture):
            return asyncio.wrap_future(value, loop=loop)
        return asyncio.ensure_future(value, loop=loop)

    if kind is SuspensionKind.COROUTINE:
        return spawn(value)

    if kind is SuspensionKind.SEQUENCE:
        futures = [normalize(item, spawn, loop=loop) for item in value]
        return join_sequence(futures, loop=loop, factory=_sequence_factory(value))

    futures_by_key = {key: normalize(item, spawn, loop=loop) for key, item in value.items()}
    return join_mapping(futures_by_key, loop=loop)


def join_sequence(
    futures: list[asyncio.Future[Any]],
    *,
    loop: asyncio.AbstractEventLoop,
    factory: Callable[[list[Any]], Any] = list,
) -> asyncio.Future[Any]:
    """
    Join futures into one that resolves with their results in order.

    Rejects with the first error to arrive. The remaining futures keep running; they
    are not cancelled.
    """
    if not futures:
        future = loop.create_future()
        future.set_result(factory([]))
        return future
    return _chain(asyncio.gather(*futures), factory, loop=loop)


def join_mapping(
    futures: Mapping[Any, asyncio.Future[Any]], *, loop: asyncio.AbstractEventLoop
) -> asyncio.Future[Any]:
    """Join futures by key into one that resolves with a dict of their results."""
    keys = list(futures)
    return join_sequence(
        [futures[key] for key in keys], loop=loop, factory=lambda results: dict(zip(keys, results))
    )


def _sequence_factory(value: list[Any] | tuple[Any, ...]) -> Callable[[list[Any]], Any]:
    if isinstance(value, list):
        return list
    if hasattr(value, "_make"):  # namedtuple
        return type(value)._make
    return tuple


def _chain(
    source: asyncio.Future[Any],
    transform: Callable[[Any], Any],
    *,
    loop: asyncio.AbstractEventLoop,
) -> asyncio.Future[Any]:
    """Return a future settling like `source`, with its result passed through `transform`."""
    target = loop.create_future()

    def _transfer(done: asyncio.Future[Any]) -> None:
        if target.done():
            return
        if done.cancelled():
            target.cancel()
            return
        error = done.exception()
        if error is not None:
            target.set_exception(error)
        else:
            target.set_result(transform(done.result()))

    source.add_done_callback(_transfer)
    return target
