"""
Loop support: the `loop` variable and loop control signals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, List, Optional

from .steps import EXHAUSTED, Step, StepCallable, StepIterator, drive_async, drive_sync
from .undefined import _MISSING

if TYPE_CHECKING:
    from ..environment import Environment


class LoopBreak(Exception):
    """Raised by `{% break %}`; caught by the nearest for loop."""


class LoopContinue(Exception):
    """Raised by `{% continue %}`; caught by the nearest for loop."""


class LoopContext(StepCallable):
    """
    The `loop` variable of a for loop.

    Items are prefetched one step ahead so `last`, `nextitem` and
    `previtem` are available without consuming the iterator twice.

    Args:
        iterator: Step iterator over the (possibly filtered) loop source
        environment: Owning environment (for `Undefined` values)
        length: Known length of the source, if any
        recurse: Step re-running the loop body on a new iterable
        depth0: Recursion depth, 0 for the outermost invocation
    """

    def __init__(
        self,
        iterator: StepIterator,
        environment: "Environment",
        length: Optional[int] = None,
        recurse: Optional[Callable[[Any, int], Step]] = None,
        depth0: int = 0,
    ):
        self._iterator = iterator
        self._environment = environment
        self._length = length
        self._recurse = recurse
        self.depth0 = depth0
        self.index0 = -1
        self._before: Any = _MISSING
        self._current: Any = _MISSING
        self._after: Any = _MISSING
        self._last_changed_value: Any = _MISSING

    # -- iteration (driven by the compiled for loop) ------------------------

    def start(self) -> Step:
        self._after = yield from self._iterator.next()

    def advance(self) -> Step:
        """Move to the next item; returns it or `EXHAUSTED`."""
        item = self._after
        if item is EXHAUSTED:
            return EXHAUSTED
        self._after = yield from self._iterator.next()
        if self.index0 >= 0:
            self._before = self._current
        self.index0 += 1
        self._current = item
        return item

    # -- template API --------------------------------------------------------

    @property
    def index(self) -> int:
        return self.index0 + 1

    @property
    def depth(self) -> int:
        return self.depth0 + 1

    @property
    def first(self) -> bool:
        return self.index0 == 0

    @property
    def last(self) -> bool:
        return self._after is EXHAUSTED

    @property
    def previtem(self) -> Any:
        if self.index0 <= 0:
            return self._environment.undefined("there is no previous item")
        return self._before

    @property
    def nextitem(self) -> Any:
        if self._after is EXHAUSTED:
            return self._environment.undefined("there is no next item")
        return self._after

    def _seen(self) -> int:
        return self.index0 + 1 + (0 if self._after is EXHAUSTED else 1)

    @property
    def length(self) -> Any:
        """
        Total number of items.

        In suspending mode, or for asynchronous sources, a length that is
        not known up front is an awaitable the template resolves
        transparently: a filtered loop may suspend in its condition.
        """
        if self._length is not None:
            return self._length
        if self._iterator.is_async or self._environment.is_async:
            return self._length_async()
        self._length = self._seen() + self._iterator.materialize()
        return self._length

    async def _length_async(self) -> int:
        if self._length is None:
            self._length = self._seen() + await self._iterator.materialize_async()
        return self._length

    @property
    def revindex(self) -> Any:
        return self._from_length(lambda length: length - self.index0)

    @property
    def revindex0(self) -> Any:
        return self._from_length(lambda length: length - self.index)

    def _from_length(self, func: Callable[[int], int]) -> Any:
        length = self.length
        if isinstance(length, int):
            return func(length)

        async def later() -> int:
            return func(await length)

        return later()

    def cycle(self, *args: Any) -> Any:
        """Return the argument at the current index modulo their count."""
        if not args:
            raise TypeError("no items for cycling given")
        return args[self.index0 % len(args)]

    def changed(self, *value: Any) -> bool:
        """True on the first call and whenever the value differs from the previous call."""
        if self._last_changed_value != value:
            self._last_changed_value = value
            return True
        return False

    def step_call(self, iterable: Any) -> Step:
        if self._recurse is None:
            raise TypeError("The loop must have the 'recursive' marker to be called recursively.")
        return (yield from self._recurse(iterable, self.depth))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.index}/{self._length if self._length is not None else '?'}>"


class FilteredStepIterator:
    """
    Step iterator that skips items rejected by a predicate step.

    Used for `{% for x in items if cond %}`; the predicate sees each
    candidate bound to the loop target.
    """

    def __init__(self, iterator: StepIterator, predicate: Callable[[Any], Step]):
        self._iterator = iterator
        self._predicate = predicate

    @property
    def is_async(self) -> bool:
        return self._iterator.is_async

    def next(self) -> Step:
        while True:
            item = yield from self._iterator.next()
            if item is EXHAUSTED:
                return item
            if (yield from self._predicate(item)):
                return item

    def _collect(self) -> Step:
        items: List[Any] = []
        while True:
            item = yield from self.next()
            if item is EXHAUSTED:
                break
            items.append(item)
        self._iterator = StepIterator(items)
        self._predicate = _accept
        return len(items)

    def materialize(self) -> int:
        return drive_sync(self._collect())

    async def materialize_async(self) -> int:
        return await drive_async(self._collect())


def _accept(item: Any) -> Step:
    yield from ()
    return True


__all__ = [
    "LoopContext",
    "FilteredStepIterator",
    "LoopBreak",
    "LoopContinue",
]
