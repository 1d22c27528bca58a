"""
Undefined values.

Lookups that find nothing produce an `Undefined` instead of raising right
away, so templates can test, default or print them. Using one where a
concrete value is required raises `UndefinedError` with a message that
describes what was missing.
"""

from __future__ import annotations

from typing import Any, Iterator, NoReturn, Optional, Type

from ..errors import UndefinedError

_MISSING: Any = type("_MissingType", (), {"__repr__": lambda self: "missing"})()


def object_type_repr(obj: Any) -> str:
    """Describe the type of an object for error messages (`'dict' object`)."""
    if obj is None:
        return "None"
    if obj is Ellipsis:
        return "Ellipsis"
    cls = type(obj)
    if cls.__module__ == "builtins":
        return f"'{cls.__name__}' object"
    return f"'{cls.__module__}.{cls.__name__}' object"


class Undefined:
    """
    Default undefined value.

    Renders as an empty string, is falsy and iterates as empty. Arithmetic,
    calling, ordering comparisons and attribute or item access raise
    `UndefinedError`.
    """

    __slots__ = ("_undefined_hint", "_undefined_obj", "_undefined_name", "_undefined_exception")

    def __init__(
        self,
        hint: Optional[str] = None,
        obj: Any = _MISSING,
        name: Optional[Any] = None,
        exc: Type[UndefinedError] = UndefinedError,
    ):
        self._undefined_hint = hint
        self._undefined_obj = obj
        self._undefined_name = name
        self._undefined_exception = exc

    @property
    def _undefined_message(self) -> str:
        if self._undefined_hint:
            return self._undefined_hint
        if self._undefined_obj is _MISSING:
            return f"{self._undefined_name!r} is undefined"
        if not isinstance(self._undefined_name, str):
            return f"{object_type_repr(self._undefined_obj)} has no element {self._undefined_name!r}"
        return f"{object_type_repr(self._undefined_obj)} has no attribute {self._undefined_name!r}"

    def _fail_with_undefined_error(self, *args: Any, **kwargs: Any) -> NoReturn:
        raise self._undefined_exception(self._undefined_message)

    def __getattr__(self, name: str) -> Any:
        if name[:2] == "__":
            raise AttributeError(name)
        return self._fail_with_undefined_error()

    __add__ = __radd__ = __sub__ = __rsub__ = _fail_with_undefined_error
    __mul__ = __rmul__ = __div__ = __rdiv__ = _fail_with_undefined_error
    __truediv__ = __rtruediv__ = _fail_with_undefined_error
    __floordiv__ = __rfloordiv__ = _fail_with_undefined_error
    __mod__ = __rmod__ = __pos__ = __neg__ = _fail_with_undefined_error
    __call__ = __getitem__ = _fail_with_undefined_error
    __lt__ = __le__ = __gt__ = __ge__ = _fail_with_undefined_error
    __int__ = __float__ = __complex__ = _fail_with_undefined_error
    __pow__ = __rpow__ = _fail_with_undefined_error

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other)

    def __ne__(self, other: Any) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return id(type(self))

    def __str__(self) -> str:
        return ""

    def __len__(self) -> int:
        return 0

    def __iter__(self) -> Iterator[Any]:
        yield from ()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Undefined"


class ChainableUndefined(Undefined):
    """Undefined that returns itself on attribute and item access."""

    __slots__ = ()

    def __html__(self) -> str:
        return str(self)

    def __getattr__(self, name: str) -> "ChainableUndefined":
        if name[:2] == "__":
            raise AttributeError(name)
        return self

    def __getitem__(self, key: Any) -> "ChainableUndefined":
        return self


class StrictUndefined(Undefined):
    """Undefined that also raises on printing, iteration, truth tests and equality."""

    __slots__ = ()

    __iter__ = __str__ = __len__ = Undefined._fail_with_undefined_error
    __eq__ = __ne__ = __bool__ = __hash__ = Undefined._fail_with_undefined_error
    __contains__ = Undefined._fail_with_undefined_error


def is_undefined(obj: Any) -> bool:
    return isinstance(obj, Undefined)


__all__ = [
    "Undefined",
    "ChainableUndefined",
    "StrictUndefined",
    "is_undefined",
    "object_type_repr",
]
