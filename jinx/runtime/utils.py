"""
Runtime helpers: output joining, argument-passing decorators and the
default global functions (`range`, `lipsum`, `cycler`, `joiner`,
`namespace`).
"""

from __future__ import annotations

import enum
import random
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from markupsafe import Markup, escape

F = TypeVar("F", bound=Callable[..., Any])

# Upper bound for `range()` in templates.
MAX_RANGE = 100000


class PassArg(enum.Enum):
    """What a decorated filter, test or global receives as first argument."""
    CONTEXT = "context"
    EVAL_CONTEXT = "eval_context"
    ENVIRONMENT = "environment"

    @classmethod
    def from_obj(cls, obj: Any) -> Optional["PassArg"]:
        return getattr(obj, "jinx_pass_arg", None)


def pass_context(f: F) -> F:
    """Pass the active `Context` as the first argument when called from a template."""
    f.jinx_pass_arg = PassArg.CONTEXT  # type: ignore[attr-defined]
    return f


def pass_eval_context(f: F) -> F:
    """Pass the active `EvalContext` as the first argument."""
    f.jinx_pass_arg = PassArg.EVAL_CONTEXT  # type: ignore[attr-defined]
    return f


def pass_environment(f: F) -> F:
    """Pass the `Environment` as the first argument."""
    f.jinx_pass_arg = PassArg.ENVIRONMENT  # type: ignore[attr-defined]
    return f


def markup_join(values: Iterable[Any]) -> str:
    """Join values; the result is `Markup` (escaping the rest) if any value is markup."""
    values = list(values)
    if any(hasattr(value, "__html__") for value in values):
        return Markup("").join(values)
    return "".join(str(value) for value in values)


def str_join(values: Iterable[Any]) -> str:
    return "".join(str(value) for value in values)


def to_output(value: Any, autoescape: bool) -> str:
    """Convert an expression result to output text."""
    if autoescape:
        return escape(value)
    return str(value)


def safe_range(*args: int) -> range:
    """
    `range()` bounded to `MAX_RANGE` items.

    Raises:
        OverflowError: If the range would be larger
    """
    rng = range(*args)
    if len(rng) > MAX_RANGE:
        raise OverflowError(
            f"Range too big. Ranges larger than {MAX_RANGE} items are not allowed."
        )
    return rng


class Namespace:
    """
    Mutable attribute bag; the only object `{% set ns.attr = ... %}`
    may write to.
    """

    def __init__(*args: Any, **kwargs: Any):
        self, args = args[0], args[1:]
        self.__attrs = dict(*args, **kwargs)

    def __getattribute__(self, name: str) -> Any:
        if name in {"_Namespace__attrs", "__class__"}:
            return object.__getattribute__(self, name)
        try:
            return self.__attrs[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setitem__(self, name: str, value: Any) -> None:
        self.__attrs[name] = value

    def __repr__(self) -> str:
        return f"<Namespace {self.__attrs!r}>"


class Cycler:
    """Cycle through values; `next()` returns the current one and advances."""

    def __init__(self, *items: Any):
        if not items:
            raise RuntimeError("at least one item has to be provided")
        self.items = items
        self.pos = 0

    def reset(self) -> None:
        self.pos = 0

    @property
    def current(self) -> Any:
        return self.items[self.pos]

    def next(self) -> Any:
        rv = self.current
        self.pos = (self.pos + 1) % len(self.items)
        return rv

    __next__ = next


class Joiner:
    """Returns the separator on every call except the first."""

    def __init__(self, sep: str = ", "):
        self.sep = sep
        self.used = False

    def __call__(self) -> str:
        if not self.used:
            self.used = True
            return ""
        return self.sep


_LOREM_WORDS = (
    "a ac accumsan ad adipiscing aenean aliquam aliquet amet ante aptent arcu at "
    "auctor augue bibendum blandit class commodo condimentum congue consectetuer "
    "consequat conubia convallis cras cubilia curabitur curae cursus dapibus diam "
    "dictum dictumst dignissim dis dolor donec dui duis egestas eget eleifend elementum "
    "elit enim erat eros est et etiam eu euismod facilisi facilisis fames faucibus "
    "felis fermentum feugiat fringilla fusce gravida habitant habitasse hac hendrerit "
    "hymenaeos iaculis id imperdiet in inceptos integer interdum ipsum justo lacinia "
    "lacus laoreet lectus leo libero ligula litora lobortis lorem luctus maecenas magna "
    "magnis malesuada massa mattis mauris metus mi molestie mollis montes morbi mus nam "
    "nascetur natoque nec neque netus nibh nisi nisl non nonummy nostra nulla nullam "
    "nunc odio orci ornare parturient pede pellentesque penatibus per pharetra "
    "phasellus placerat platea porta porttitor posuere potenti praesent pretium primis "
    "proin pulvinar purus quam quis quisque rhoncus ridiculus risus rutrum sagittis "
    "sapien scelerisque sed sem semper senectus sit sociis sociosqu sodales sollicitudin "
    "suscipit suspendisse taciti tellus tempor tempus tincidunt torquent tortor "
    "tristique turpis ullamcorper ultrices ultricies urna ut varius vehicula vel velit "
    "venenatis vestibulum vitae vivamus viverra volutpat vulputate"
).split()


def generate_lorem_ipsum(n: int = 5, html: bool = True, min: int = 20, max: int = 100) -> str:
    """Generate `n` paragraphs of lorem ipsum, wrapped in `<p>` when `html`."""
    result: List[str] = []
    for _ in range(n):
        next_capitalized = True
        last_comma = last_fullstop = 0
        last_word: Optional[str] = None
        words: List[str] = []

        for idx in range(random.randint(min, max)):
            while True:
                word = random.choice(_LOREM_WORDS)
                if word != last_word:
                    last_word = word
                    break
            if next_capitalized:
                word = word.capitalize()
                next_capitalized = False
            if idx - random.randint(3, 8) > last_comma:
                last_comma = idx
                last_fullstop += 2
                word += ","
            if idx - random.randint(10, 20) > last_fullstop:
                last_comma = last_fullstop = idx
                word += "."
                next_capitalized = True
            words.append(word)

        paragraph = " ".join(words)
        if paragraph.endswith(","):
            paragraph = paragraph[:-1] + "."
        elif not paragraph.endswith("."):
            paragraph += "."
        result.append(paragraph)

    if not html:
        return "\n\n".join(result)
    return Markup("\n".join(f"<p>{escape(p)}</p>" for p in result))


DEFAULT_GLOBALS: Dict[str, Any] = {
    "range": safe_range,
    "dict": dict,
    "lipsum": generate_lorem_ipsum,
    "cycler": Cycler,
    "joiner": Joiner,
    "namespace": Namespace,
}

__all__ = [
    "PassArg",
    "pass_context",
    "pass_eval_context",
    "pass_environment",
    "markup_join",
    "str_join",
    "to_output",
    "safe_range",
    "Namespace",
    "Cycler",
    "Joiner",
    "generate_lorem_ipsum",
    "DEFAULT_GLOBALS",
    "MAX_RANGE",
]
