"""
Built-in filters.

Filters are plain callables receiving the filtered value first. Those
decorated with `pass_context`, `pass_eval_context` or `pass_environment`
receive that object before the value.
"""

from __future__ import annotations

import json
import math
import pprint
import random
import re
import textwrap
from collections import abc
from itertools import chain, groupby
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Iterator, List, NamedTuple, Optional, Union
from urllib.parse import quote_from_bytes

from markupsafe import Markup, escape, soft_str

from .errors import FilterArgumentError
from .runtime.undefined import Undefined
from .runtime.utils import pass_context, pass_environment, pass_eval_context

if TYPE_CHECKING:
    from .environment import Environment
    from .runtime.context import Context, EvalContext

_word_re = re.compile(r"\w+")
_word_beginning_split_re = re.compile(r"([-\s({\[<]+)")
_attr_key_re = re.compile(r"[\s/>=]", flags=re.ASCII)
_http_re = re.compile(r"^(https?://)[^\s<]+$", re.IGNORECASE)
_www_re = re.compile(r"^www\.[^\s<]+\.[a-z]{2,}[^\s<]*$", re.IGNORECASE)
_email_re = re.compile(r"^\S+@\w[\w.-]*\.\w+$")
_lead_punct_re = re.compile(r"^([(<]|&lt;)+")
_trail_punct_re = re.compile(r"([)>.,\n]|&gt;)+$")


# -- helpers -----------------------------------------------------------------------

def ignore_case(value: Any) -> Any:
    """Lowercase strings, leave everything else alone (sort key helper)."""
    if isinstance(value, str):
        return value.lower()
    return value


def _attribute_parts(attribute: Any) -> List[Any]:
    if attribute is None:
        return []
    if isinstance(attribute, str):
        return [int(part) if part.isdigit() else part for part in attribute.split(".")]
    return [attribute]


def make_attrgetter(
    environment: "Environment",
    attribute: Any,
    postprocess: Optional[Callable[[Any], Any]] = None,
    default: Any = None,
) -> Callable[[Any], Any]:
    """
    Build a getter for a dotted attribute path (`"user.name"`, `"items.0"`).

    Lookups go through the environment so dicts and objects work alike.
    """
    parts = _attribute_parts(attribute)

    def attrgetter(item: Any) -> Any:
        for part in parts:
            item = environment.getitem(item, part)
            if default is not None and isinstance(item, Undefined):
                item = default
        if postprocess is not None:
            item = postprocess(item)
        return item

    return attrgetter


def make_multi_attrgetter(
    environment: "Environment",
    attribute: Any,
    postprocess: Optional[Callable[[Any], Any]] = None,
) -> Callable[[Any], List[Any]]:
    """Like `make_attrgetter` for a comma separated list of paths."""
    split = attribute.split(",") if isinstance(attribute, str) else [attribute]
    getters = [make_attrgetter(environment, part, postprocess) for part in split]

    def attrgetter(item: Any) -> List[Any]:
        return [getter(item) for getter in getters]

    return attrgetter


def url_quote(obj: Any, charset: str = "utf-8", for_qs: bool = False) -> str:
    """Quote a string for use in a URL path or (`for_qs`) a query string."""
    if not isinstance(obj, bytes):
        obj = str(obj).encode(charset)
    rv = quote_from_bytes(obj, safe=b"" if for_qs else b"/")
    if for_qs:
        rv = rv.replace("%20", "+")
    return rv


def htmlsafe_json_dumps(obj: Any, indent: Optional[int] = None) -> Markup:
    """Serialize to JSON that is safe inside HTML `<script>` tags and attributes."""
    dumped = (
        json.dumps(obj, indent=indent, sort_keys=True)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("'", "\\u0027")
    )
    return Markup(dumped)


def urlize(
    text: str,
    trim_url_limit: Optional[int] = None,
    rel: Optional[str] = None,
    target: Optional[str] = None,
    extra_schemes: Optional[Iterable[str]] = None,
) -> str:
    """Escape `text` and turn URLs and email addresses in it into links."""
    def trim_url(url: str) -> str:
        if trim_url_limit is not None and len(url) > trim_url_limit:
            return url[:trim_url_limit] + "..."
        return url

    rel_attr = f' rel="{escape(rel)}"' if rel else ""
    target_attr = f' target="{escape(target)}"' if target else ""
    schemes = tuple(extra_schemes or ())
    words = re.split(r"(\s+)", str(escape(text)))

    for index, word in enumerate(words):
        head, middle, tail = "", word, ""
        match = _lead_punct_re.match(middle)
        if match:
            head, middle = match.group(), middle[match.end():]
        match = _trail_punct_re.search(middle)
        if match:
            middle, tail = middle[:match.start()], match.group()

        if _http_re.match(middle) or (schemes and middle.startswith(schemes)):
            middle = f'<a href="{middle}"{rel_attr}{target_attr}>{trim_url(middle)}</a>'
        elif _www_re.match(middle):
            middle = f'<a href="https://{middle}"{rel_attr}{target_attr}>{trim_url(middle)}</a>'
        elif "@" in middle and ":" not in middle and _email_re.match(middle):
            middle = f'<a href="mailto:{middle}">{middle}</a>'
        words[index] = head + middle + tail

    return "".join(words)


# -- strings -----------------------------------------------------------------------

def do_forceescape(value: Any) -> Markup:
    """Escape even values that are already markup."""
    if hasattr(value, "__html__"):
        value = value.__html__()
    return escape(str(value))


def do_urlencode(value: Union[str, Dict[str, Any], Iterable[Any]]) -> str:
    """Quote a string for URLs, or a dict / pair list as a query string."""
    if isinstance(value, str) or not isinstance(value, abc.Iterable):
        return url_quote(value)
    if isinstance(value, dict):
        items = value.items()
    else:
        items = iter(value)
    return "&".join(f"{url_quote(k, for_qs=True)}={url_quote(v, for_qs=True)}" for k, v in items)


@pass_eval_context
def do_replace(eval_ctx: "EvalContext", s: str, old: str, new: str, count: Optional[int] = None) -> str:
    """Replace occurrences of `old` with `new`, at most `count` times."""
    if count is None:
        count = -1
    if not eval_ctx.autoescape:
        return str(s).replace(str(old), str(new), count)
    if (hasattr(old, "__html__") or hasattr(new, "__html__")) and not hasattr(s, "__html__"):
        s = escape(s)
    else:
        s = soft_str(s)
    return s.replace(soft_str(old), soft_str(new), count)


def do_upper(s: str) -> str:
    return soft_str(s).upper()


def do_lower(s: str) -> str:
    return soft_str(s).lower()


def do_capitalize(s: str) -> str:
    return soft_str(s).capitalize()


def do_title(s: str) -> str:
    """Uppercase the first letter of every word."""
    return "".join(
        item[0].upper() + item[1:].lower()
        for item in _word_beginning_split_re.split(soft_str(s))
        if item
    )


def do_center(value: str, width: int = 80) -> str:
    return soft_str(value).center(width)


def do_trim(value: str, chars: Optional[str] = None) -> str:
    return soft_str(value).strip(chars)


def do_striptags(value: Any) -> str:
    """Remove SGML/XML tags and collapse whitespace."""
    if hasattr(value, "__html__"):
        value = value.__html__()
    return Markup(str(value)).striptags()


def do_format(value: str, *args: Any, **kwargs: Any) -> str:
    """Apply printf-style formatting: `"%s - %s"|format("a", "b")`."""
    if args and kwargs:
        raise FilterArgumentError("can't handle positional and keyword arguments at the same time")
    return soft_str(value) % (kwargs or args)


def do_indent(s: str, width: Union[int, str] = 4, first: bool = False, blank: bool = False) -> str:
    """
    Indent every line but the first by `width` spaces (or the given string).

    Args:
        first: Indent the first line too
        blank: Indent blank lines too
    """
    indention = width if isinstance(width, str) else " " * width
    newline = "\n"
    if isinstance(s, Markup):
        newline = Markup(newline)
    s += newline

    if blank:
        rv = (newline + indention).join(s.splitlines())
    else:
        lines = s.splitlines()
        rv = lines.pop(0)
        if lines:
            rv += newline + newline.join(indention + line if line else line for line in lines)

    if first:
        rv = indention + rv
    return rv


@pass_environment
def do_truncate(
    env: "Environment",
    s: str,
    length: int = 255,
    killwords: bool = False,
    end: str = "...",
    leeway: Optional[int] = None,
) -> str:
    """
    Shorten a string to `length` characters (including `end`).

    Strings at most `leeway` characters over the limit are left alone.
    Unless `killwords` is set the cut happens at a word boundary.
    """
    if leeway is None:
        leeway = 5
    if length < len(end):
        raise FilterArgumentError(f"expected length >= {len(end)}, got {length}")
    if leeway < 0:
        raise FilterArgumentError(f"expected leeway >= 0, got {leeway}")
    if len(s) <= length + leeway:
        return s
    if killwords:
        return s[: length - len(end)] + end
    result = s[: length - len(end)].rsplit(" ", 1)[0]
    return result + end


@pass_environment
def do_wordwrap(
    environment: "Environment",
    s: str,
    width: int = 79,
    break_long_words: bool = True,
    wrapstring: Optional[str] = None,
    break_on_hyphens: bool = True,
) -> str:
    """Wrap text at `width`, keeping existing newlines as paragraph breaks."""
    if wrapstring is None:
        wrapstring = environment.lexer_config.newline_sequence
    return wrapstring.join(
        wrapstring.join(
            textwrap.wrap(
                line,
                width=width,
                expand_tabs=False,
                replace_whitespace=False,
                break_long_words=break_long_words,
                break_on_hyphens=break_on_hyphens,
            )
        )
        for line in s.splitlines()
    )


def do_wordcount(s: str) -> int:
    return len(_word_re.findall(soft_str(s)))


@pass_eval_context
def do_urlize(
    eval_ctx: "EvalContext",
    value: str,
    trim_url_limit: Optional[int] = None,
    nofollow: bool = False,
    target: Optional[str] = None,
    rel: Optional[str] = None,
    extra_schemes: Optional[Iterable[str]] = None,
) -> str:
    """Turn URLs in text into clickable links."""
    rel_parts = set((rel or "").split())
    if nofollow:
        rel_parts.add("nofollow")
    rel = " ".join(sorted(rel_parts)) or None
    rv = urlize(value, trim_url_limit, rel=rel, target=target, extra_schemes=extra_schemes)
    if eval_ctx.autoescape:
        rv = Markup(rv)
    return rv


@pass_eval_context
def do_xmlattr(eval_ctx: "EvalContext", d: Dict[str, Any], autospace: bool = True) -> str:
    """
    Build an SGML/XML attribute string from a dict.

    None and undefined values are skipped.

    Raises:
        ValueError: If a key contains a space, `/`, `>` or `=`
    """
    items = []
    for key, value in d.items():
        if value is None or isinstance(value, Undefined):
            continue
        if _attr_key_re.search(key) is not None:
            raise ValueError(f"Invalid character in attribute name: {key!r}")
        items.append(f'{escape(key)}="{escape(value)}"')

    rv = " ".join(items)
    if autospace and rv:
        rv = " " + rv
    if eval_ctx.autoescape:
        rv = Markup(rv)
    return rv


def do_filesizeformat(value: Union[str, float, int], binary: bool = False) -> str:
    """Human readable file size (`13 kB`, `4.1 MB`); `binary` uses powers of 1024."""
    size = float(value)
    base = 1024 if binary else 1000
    prefixes = [
        ("KiB" if binary else "kB"),
        ("MiB" if binary else "MB"),
        ("GiB" if binary else "GB"),
        ("TiB" if binary else "TB"),
        ("PiB" if binary else "PB"),
        ("EiB" if binary else "EB"),
        ("ZiB" if binary else "ZB"),
        ("YiB" if binary else "YB"),
    ]
    if size == 1:
        return "1 Byte"
    if size < base:
        return f"{int(size)} Bytes"
    for i, prefix in enumerate(prefixes):
        unit = base ** (i + 2)
        if size < unit:
            return f"{base * size / unit:.1f} {prefix}"
    return f"{base * size / unit:.1f} {prefix}"


def do_pprint(value: Any) -> str:
    return pprint.pformat(value)


def do_tojson(value: Any, indent: Optional[int] = None) -> Markup:
    """Serialize to HTML-safe JSON."""
    return htmlsafe_json_dumps(value, indent=indent)


def do_mark_safe(value: str) -> Markup:
    return Markup(value)


# -- sequences and mappings ---------------------------------------------------------

def do_items(value: Any) -> Iterator[Any]:
    """Iterate over the `(key, value)` pairs of a mapping; undefined gives nothing."""
    if isinstance(value, Undefined):
        return
    if not isinstance(value, abc.Mapping):
        raise TypeError("Can only get item pairs from a mapping.")
    yield from value.items()


def do_dictsort(value: Any, case_sensitive: bool = False, by: str = "key", reverse: bool = False) -> List[Any]:
    """Sort a dict into a list of `(key, value)` pairs, by key or by value."""
    if by == "key":
        pos = 0
    elif by == "value":
        pos = 1
    else:
        raise FilterArgumentError('You can only sort by either "key" or "value"')

    def sort_func(item: Any) -> Any:
        value = item[pos]
        if not case_sensitive:
            value = ignore_case(value)
        return value

    return sorted(value.items(), key=sort_func, reverse=reverse)


@pass_environment
def do_sort(
    environment: "Environment",
    value: Iterable[Any],
    reverse: bool = False,
    case_sensitive: bool = False,
    attribute: Any = None,
) -> List[Any]:
    """Sort an iterable, optionally by one or more (comma separated) attributes."""
    key_func = make_multi_attrgetter(environment, attribute, postprocess=ignore_case if not case_sensitive else None)
    return sorted(value, key=key_func, reverse=reverse)


@pass_environment
def do_unique(
    environment: "Environment",
    value: Iterable[Any],
    case_sensitive: bool = False,
    attribute: Any = None,
) -> Iterator[Any]:
    """Yield items in order, skipping duplicates."""
    getter = make_attrgetter(environment, attribute, postprocess=ignore_case if not case_sensitive else None)
    seen = set()
    for item in value:
        key = getter(item)
        if key not in seen:
            seen.add(key)
            yield item


def _min_or_max(
    environment: "Environment",
    value: Iterable[Any],
    func: Callable[..., Any],
    case_sensitive: bool,
    attribute: Any,
) -> Any:
    it = iter(value)
    try:
        first = next(it)
    except StopIteration:
        return environment.undefined("No aggregated item, sequence was empty.")
    key_func = make_attrgetter(environment, attribute, postprocess=ignore_case if not case_sensitive else None)
    return func(chain([first], it), key=key_func)


@pass_environment
def do_min(environment: "Environment", value: Iterable[Any], case_sensitive: bool = False, attribute: Any = None) -> Any:
    return _min_or_max(environment, value, min, case_sensitive, attribute)


@pass_environment
def do_max(environment: "Environment", value: Iterable[Any], case_sensitive: bool = False, attribute: Any = None) -> Any:
    return _min_or_max(environment, value, max, case_sensitive, attribute)


def do_default(value: Any, default_value: Any = "", boolean: bool = False) -> Any:
    """Replace undefined (or, with `boolean`, any falsy) values."""
    if isinstance(value, Undefined) or (boolean and not value):
        return default_value
    return value


@pass_eval_context
def do_join(eval_ctx: "EvalContext", value: Iterable[Any], d: str = "", attribute: Any = None) -> str:
    """
    Concatenate the items with separator `d`.

    With autoescape on, plain items are escaped when any item is markup.
    """
    if attribute is not None:
        value = map(make_attrgetter(eval_ctx.environment, attribute), value)

    if not eval_ctx.autoescape:
        return str(d).join(map(str, value))

    if not hasattr(d, "__html__"):
        value = list(value)
        do_escape = False
        for idx, item in enumerate(value):
            if hasattr(item, "__html__"):
                do_escape = True
            else:
                value[idx] = str(item)
        d = escape(d) if do_escape else str(d)
        return d.join(value)

    return soft_str(d).join(map(soft_str, value))


@pass_environment
def do_first(environment: "Environment", seq: Iterable[Any]) -> Any:
    try:
        return next(iter(seq))
    except StopIteration:
        return environment.undefined("No first item, sequence was empty.")


@pass_environment
def do_last(environment: "Environment", seq: Any) -> Any:
    try:
        return next(iter(reversed(seq)))
    except StopIteration:
        return environment.undefined("No last item, sequence was empty.")


@pass_context
def do_random(context: "Context", seq: Any) -> Any:
    try:
        return random.choice(seq)
    except IndexError:
        return context.environment.undefined("No random item, sequence was empty.")


def do_slice(value: Iterable[Any], slices: int, fill_with: Any = None) -> Iterator[List[Any]]:
    """Split into `slices` columns; `fill_with` pads the shorter ones."""
    seq = list(value)
    length = len(seq)
    items_per_slice = length // slices
    slices_with_extra = length % slices
    offset = 0

    for slice_number in range(slices):
        start = offset + slice_number * items_per_slice
        if slice_number < slices_with_extra:
            offset += 1
        end = offset + (slice_number + 1) * items_per_slice
        tmp = seq[start:end]
        if fill_with is not None and slice_number >= slices_with_extra:
            tmp.append(fill_with)
        yield tmp


def do_batch(value: Iterable[Any], linecount: int, fill_with: Any = None) -> Iterator[List[Any]]:
    """Split into lists of `linecount` items; `fill_with` pads the last one."""
    tmp: List[Any] = []
    for item in value:
        if len(tmp) == linecount:
            yield tmp
            tmp = []
        tmp.append(item)

    if tmp:
        if fill_with is not None and len(tmp) < linecount:
            tmp += [fill_with] * (linecount - len(tmp))
        yield tmp


def do_round(value: float, precision: int = 0, method: str = "common") -> float:
    """Round with `common` (half away from even as Python does), `ceil` or `floor`."""
    if method not in {"common", "ceil", "floor"}:
        raise FilterArgumentError("method must be common, ceil or floor")
    if method == "common":
        return round(value, precision)
    func = getattr(math, method)
    return func(value * (10 ** precision)) / (10 ** precision)


class _GroupTuple(NamedTuple):
    grouper: Any
    list: List[Any]

    def __repr__(self) -> str:
        return tuple.__repr__(self)

    def __str__(self) -> str:
        return tuple.__str__(self)


@pass_environment
def do_groupby(
    environment: "Environment",
    value: Iterable[Any],
    attribute: Any,
    default: Any = None,
    case_sensitive: bool = False,
) -> List[_GroupTuple]:
    """Group items by an attribute into `(grouper, list)` pairs sorted by grouper."""
    expr = make_attrgetter(
        environment, attribute, postprocess=ignore_case if not case_sensitive else None, default=default
    )
    out = [_GroupTuple(key, list(values)) for key, values in groupby(sorted(value, key=expr), expr)]
    if not case_sensitive:
        output_expr = make_attrgetter(environment, attribute, default=default)
        out = [_GroupTuple(output_expr(values[0]), values) for _, values in out]
    return out


@pass_environment
def do_sum(environment: "Environment", iterable: Iterable[Any], attribute: Any = None, start: Any = 0) -> Any:
    if attribute is not None:
        iterable = map(make_attrgetter(environment, attribute), iterable)
    return sum(iterable, start)


def do_list(value: Any) -> List[Any]:
    return list(value)


def do_reverse(value: Any) -> Any:
    """Reverse a string or sequence."""
    if isinstance(value, str):
        return value[::-1]
    try:
        return reversed(value)
    except TypeError:
        try:
            rv = list(value)
            rv.reverse()
            return rv
        except TypeError as error:
            raise FilterArgumentError("argument must be iterable") from error


@pass_environment
def do_attr(environment: "Environment", obj: Any, name: str) -> Any:
    """Attribute lookup that never falls back to item lookup."""
    try:
        return getattr(obj, str(name))
    except AttributeError:
        return environment.undefined(obj=obj, name=name)


def _prepare_map(context: "Context", args: Any, kwargs: Dict[str, Any]) -> Callable[[Any], Any]:
    if not args and "attribute" in kwargs:
        attribute = kwargs.pop("attribute")
        default = kwargs.pop("default", None)
        if kwargs:
            raise FilterArgumentError(f"Unexpected keyword argument {next(iter(kwargs))!r}")
        return make_attrgetter(context.environment, attribute, default=default)

    if not args:
        raise FilterArgumentError("map requires a filter argument")
    name, args = args[0], args[1:]

    def func(item: Any) -> Any:
        return context.environment.call_filter(name, item, args, kwargs, context=context)

    return func


@pass_context
def do_map(context: "Context", value: Iterable[Any], *args: Any, **kwargs: Any) -> Iterator[Any]:
    """Apply a filter (or attribute lookup, with `attribute=`) to every item."""
    if value:
        func = _prepare_map(context, args, kwargs)
        for item in value:
            yield func(item)


def _select_or_reject(
    context: "Context",
    value: Iterable[Any],
    args: Any,
    kwargs: Dict[str, Any],
    keep: Callable[[bool], bool],
    lookup_attr: bool,
) -> Iterator[Any]:
    if not value:
        return
    offset = 0
    transform: Callable[[Any], Any] = lambda item: item
    if lookup_attr:
        if not args:
            raise FilterArgumentError("Missing parameter for attribute name")
        transform = make_attrgetter(context.environment, args[0])
        offset = 1

    if len(args) > offset:
        name, test_args = args[offset], args[offset + 1:]

        def func(item: Any) -> Any:
            return context.environment.call_test(name, item, test_args, kwargs, context=context)
    else:
        func = bool

    for item in value:
        if keep(func(transform(item))):
            yield item


@pass_context
def do_select(context: "Context", value: Iterable[Any], *args: Any, **kwargs: Any) -> Iterator[Any]:
    """Keep items passing a test (truthy items without one)."""
    return _select_or_reject(context, value, args, kwargs, lambda x: x, False)


@pass_context
def do_reject(context: "Context", value: Iterable[Any], *args: Any, **kwargs: Any) -> Iterator[Any]:
    return _select_or_reject(context, value, args, kwargs, lambda x: not x, False)


@pass_context
def do_selectattr(context: "Context", value: Iterable[Any], *args: Any, **kwargs: Any) -> Iterator[Any]:
    """Keep items whose attribute passes a test."""
    return _select_or_reject(context, value, args, kwargs, lambda x: x, True)


@pass_context
def do_rejectattr(context: "Context", value: Iterable[Any], *args: Any, **kwargs: Any) -> Iterator[Any]:
    return _select_or_reject(context, value, args, kwargs, lambda x: not x, True)


def do_int(value: Any, default: int = 0, base: int = 10) -> int:
    """Convert to int; strings are parsed in `base`, failures give `default`."""
    try:
        if isinstance(value, str):
            return int(value, base)
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default


def do_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


DEFAULT_FILTERS: Dict[str, Callable[..., Any]] = {
    "abs": abs,
    "attr": do_attr,
    "batch": do_batch,
    "capitalize": do_capitalize,
    "center": do_center,
    "count": len,
    "d": do_default,
    "default": do_default,
    "dictsort": do_dictsort,
    "e": escape,
    "escape": escape,
    "filesizeformat": do_filesizeformat,
    "first": do_first,
    "float": do_float,
    "forceescape": do_forceescape,
    "format": do_format,
    "groupby": do_groupby,
    "indent": do_indent,
    "int": do_int,
    "join": do_join,
    "last": do_last,
    "length": len,
    "list": do_list,
    "lower": do_lower,
    "items": do_items,
    "map": do_map,
    "min": do_min,
    "max": do_max,
    "pprint": do_pprint,
    "random": do_random,
    "reject": do_reject,
    "rejectattr": do_rejectattr,
    "replace": do_replace,
    "reverse": do_reverse,
    "round": do_round,
    "safe": do_mark_safe,
    "select": do_select,
    "selectattr": do_selectattr,
    "slice": do_slice,
    "sort": do_sort,
    "string": soft_str,
    "striptags": do_striptags,
    "sum": do_sum,
    "title": do_title,
    "trim": do_trim,
    "truncate": do_truncate,
    "unique": do_unique,
    "upper": do_upper,
    "urlencode": do_urlencode,
    "urlize": do_urlize,
    "wordcount": do_wordcount,
    "wordwrap": do_wordwrap,
    "xmlattr": do_xmlattr,
    "tojson": do_tojson,
}

__all__ = [
    "DEFAULT_FILTERS",
    "make_attrgetter",
    "make_multi_attrgetter",
    "ignore_case",
    "url_quote",
    "urlize",
    "htmlsafe_json_dumps",
]
