"""
Resumable steps and their drivers.

Compiled templates are trees of generator functions ("steps"). A step never
awaits anything itself: whenever it needs the result of an awaitable or the
next item of an asynchronous iterator it yields a `Suspend` request and gets
the result sent back. Two drivers run the same step tree:

- `drive_sync` for direct mode, where any suspension is an error;
- `drive_async` for suspending mode, which awaits each request.
"""

from __future__ import annotations

import enum
import inspect
from dataclasses import dataclass
from typing import Any, Dict, Generator, Iterable, List, Tuple

from ..errors import TemplateRuntimeError


class SuspendKind(enum.Enum):
    VALUE_READY = "value_ready"   # target is an awaitable
    NEXT_READY = "next_ready"     # target is an async iterator


@dataclass(frozen=True)
class Suspend:
    """Request yielded by a step to the driver."""
    kind: SuspendKind
    target: Any


class _Exhausted:
    def __repr__(self) -> str:
        return "EXHAUSTED"


# Sent back for NEXT_READY when the async iterator is done.
EXHAUSTED = _Exhausted()

Step = Generator[Suspend, Any, Any]


def resolve(value: Any) -> Step:
    """Suspend on an awaitable value; pass anything else through."""
    if inspect.isawaitable(value):
        value = yield Suspend(SuspendKind.VALUE_READY, value)
    return value


def is_async_iterable(value: Any) -> bool:
    return hasattr(value, "__aiter__")


def drain(value: Any) -> Step:
    """Collect an asynchronous iterable into a list."""
    if not is_async_iterable(value):
        return value
    iterator = value.__aiter__()
    items: List[Any] = []
    while True:
        item = yield Suspend(SuspendKind.NEXT_READY, iterator)
        if item is EXHAUSTED:
            return items
        items.append(item)


class StepIterator:
    """
    Uniform step-level iteration over sync and async iterables.

    `next()` is a step returning the next item or `EXHAUSTED`.
    """

    def __init__(self, source: Iterable[Any]):
        if is_async_iterable(source):
            self._aiter = source.__aiter__()
            self._iter = None
        else:
            self._aiter = None
            self._iter = iter(source)

    @property
    def is_async(self) -> bool:
        return self._aiter is not None

    def next(self) -> Step:
        if self._aiter is not None:
            return (yield Suspend(SuspendKind.NEXT_READY, self._aiter))
        return next(self._iter, EXHAUSTED)

    def materialize(self) -> int:
        """Buffer the remaining items of a sync source; returns their count."""
        remaining = list(self._iter)
        self._iter = iter(remaining)
        return len(remaining)

    async def materialize_async(self) -> int:
        """Buffer the remaining items and continue with sync iteration."""
        if self._aiter is None:
            return self.materialize()
        remaining = [item async for item in self._aiter]
        self._aiter = None
        self._iter = iter(remaining)
        return len(remaining)


def _discard(suspend: Suspend) -> None:
    if suspend.kind is SuspendKind.VALUE_READY and inspect.iscoroutine(suspend.target):
        suspend.target.close()


def drive_sync(step: Step) -> Any:
    """
    Run a step tree to completion in direct mode.

    Raises:
        TemplateRuntimeError: If the tree suspends on an asynchronous value
    """
    try:
        suspend = step.send(None)
    except StopIteration as stop:
        return stop.value

    _discard(suspend)
    error = TemplateRuntimeError("asynchronous value encountered while rendering in direct mode")
    try:
        # Thrown into the tree so the suspending statement records its position.
        step.throw(error)
    except StopIteration:
        pass
    finally:
        step.close()
    raise error


async def drive_async(step: Step) -> Any:
    """Run a step tree to completion, awaiting every suspension."""
    value: Any = None
    error: BaseException = None
    # Coroutines can only be awaited once; later lookups of the same one reuse the result.
    awaited: Dict[int, Tuple[Any, Any]] = {}
    while True:
        try:
            if error is not None:
                suspend = step.throw(error)
            else:
                suspend = step.send(value)
        except StopIteration as stop:
            return stop.value
        value = error = None
        try:
            if suspend.kind is SuspendKind.VALUE_READY:
                target = suspend.target
                if id(target) in awaited:
                    value = awaited[id(target)][1]
                else:
                    value = await target
                    if inspect.iscoroutine(target):
                        awaited[id(target)] = (target, value)
            else:
                try:
                    value = await suspend.target.__anext__()
                except StopAsyncIteration:
                    value = EXHAUSTED
        except Exception as exc:
            error = exc


class StepCallable:
    """
    Callable whose body is a step.

    Template code invokes `step_call` with `yield from`. Host code calls the
    object directly: in direct mode the step runs to completion, in
    suspending mode a coroutine is returned.
    """

    _environment: Any = None

    def step_call(self, *args: Any, **kwargs: Any) -> Step:
        raise NotImplementedError()

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        step = self.step_call(*args, **kwargs)
        if self._environment is not None and self._environment.is_async:
            return drive_async(step)
        return drive_sync(step)


__all__ = [
    "SuspendKind",
    "Suspend",
    "EXHAUSTED",
    "Step",
    "resolve",
    "drain",
    "is_async_iterable",
    "StepIterator",
    "drive_sync",
    "drive_async",
    "StepCallable",
]
