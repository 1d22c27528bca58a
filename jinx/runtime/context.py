"""
Render-time scopes.

A `Context` holds the state of one template render: the variables passed
in (plus globals), top-level assignments, exported names and the block
chains used by inheritance. `Frame` objects form the lexical scope chain
inside it; they are created per render call and never outlive it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Set

from markupsafe import Markup

from .steps import Step, StepCallable, resolve
from .undefined import _MISSING
from .utils import PassArg, str_join

if TYPE_CHECKING:
    from ..environment import Environment
    from ..template import Template

logger = logging.getLogger(__name__)

# Compiled block: `block(context, frame, buf)` is a step; `frame` is the
# invoking frame (used by scoped blocks), `buf` receives the output.
BlockFunc = Callable[["Context", Optional["Frame"], List[str]], Step]


class EvalContext:
    """
    Evaluation settings that can change during a render.

    `autoescape` starts from the environment policy (a bool or a predicate
    on the template name) and is switched by `{% autoescape %}` blocks.
    """

    def __init__(self, environment: "Environment", template_name: Optional[str] = None):
        self.environment = environment
        if callable(environment.autoescape):
            self.autoescape = bool(environment.autoescape(template_name))
        else:
            self.autoescape = bool(environment.autoescape)

    def save(self) -> Dict[str, Any]:
        return self.__dict__.copy()

    def revert(self, old: Dict[str, Any]) -> None:
        self.__dict__.clear()
        self.__dict__.update(old)


class Context:
    """
    Template render context.

    Args:
        environment: Owning environment
        parent: Read-only mapping of render variables and globals
        name: Template name
        blocks: Blocks of the template being rendered
        globals: Globals of the template (also reachable through `parent`)
    """

    def __init__(
        self,
        environment: "Environment",
        parent: Mapping[str, Any],
        name: Optional[str],
        blocks: Mapping[str, BlockFunc],
        globals: Optional[Mapping[str, Any]] = None,
    ):
        self.environment = environment
        self.parent = parent
        self.vars: Dict[str, Any] = {}
        self.name = name
        self.eval_ctx = EvalContext(environment, name)
        self.exported_vars: Set[str] = set()
        # Child-most block first; `super()` walks towards the end.
        self.blocks: Dict[str, List[BlockFunc]] = {k: [v] for k, v in blocks.items()}
        self.globals: Mapping[str, Any] = globals if globals is not None else {}
        self.globals_keys = frozenset(self.globals.keys())
        # Parent template recorded by `extends` while the current root runs.
        self.pending_parent: Optional["Template"] = None
        # Phase of the inheritance state machine, set by the render driver.
        self.render_state: Any = None

    def resolve_or_missing(self, key: str) -> Any:
        if key in self.vars:
            return self.vars[key]
        if key in self.parent:
            return self.parent[key]
        return _MISSING

    def resolve(self, key: str) -> Any:
        rv = self.resolve_or_missing(key)
        if rv is _MISSING:
            return self.environment.undefined(name=key)
        return rv

    def get(self, key: str, default: Any = None) -> Any:
        rv = self.resolve_or_missing(key)
        return default if rv is _MISSING else rv

    def get_exported(self) -> Dict[str, Any]:
        """Top-level assignments visible to importers."""
        return {k: self.vars[k] for k in self.exported_vars}

    def get_all(self) -> Dict[str, Any]:
        """All variables of the context (globals, render vars, top-level sets)."""
        if not self.vars:
            return dict(self.parent)
        if not self.parent:
            return dict(self.vars)
        return {**self.parent, **self.vars}

    def super(self, name: str, current: BlockFunc, frame: Optional["Frame"] = None) -> Any:
        """Reference to the block after `current` in the chain of `name`."""
        blocks = self.blocks[name]
        index = blocks.index(current) + 1
        if index >= len(blocks):
            return self.environment.undefined(f"there is no parent block called {name!r}.", name="super")
        return BlockReference(name, self, blocks, index, frame)

    def __contains__(self, name: str) -> bool:
        return name in self.vars or name in self.parent

    def __getitem__(self, key: str) -> Any:
        rv = self.resolve_or_missing(key)
        if rv is _MISSING:
            raise KeyError(key)
        return rv

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_all()!r} of {self.name!r}>"


class Frame:
    """
    Lexical scope.

    Lookups walk the frame chain, then the context. Assignments in a
    top-level frame also go to the context and are exported unless the
    name starts with an underscore.
    """

    __slots__ = ("context", "parent", "vars", "loop", "toplevel", "eval_ctx")

    def __init__(
        self,
        context: Context,
        parent: Optional["Frame"] = None,
        toplevel: bool = False,
        loop: Any = None,
    ):
        self.context = context
        self.parent = parent
        self.vars: Dict[str, Any] = {}
        self.loop = loop
        self.toplevel = toplevel
        self.eval_ctx = parent.eval_ctx if parent is not None else context.eval_ctx
        if loop is not None:
            self.vars["loop"] = loop

    def child(self, loop: Any = None) -> "Frame":
        return Frame(self.context, self, loop=loop)

    def lookup(self, name: str) -> Any:
        frame: Optional[Frame] = self
        while frame is not None:
            if name in frame.vars:
                return frame.vars[name]
            frame = frame.parent
        rv = self.context.resolve_or_missing(name)
        if rv is not _MISSING:
            return rv
        if name == "self":
            return TemplateReference(self.context)
        return self.context.environment.undefined(name=name)

    def set(self, name: str, value: Any, export: bool = True) -> None:
        self.vars[name] = value
        if self.toplevel:
            self.context.vars[name] = value
            if export and not name.startswith("_"):
                self.context.exported_vars.add(name)
            else:
                self.context.exported_vars.discard(name)

    def collect(self) -> Dict[str, Any]:
        """Every binding visible from this frame, innermost winning."""
        chain: List[Frame] = []
        frame: Optional[Frame] = self
        while frame is not None:
            chain.append(frame)
            frame = frame.parent
        result = self.context.get_all()
        for frame in reversed(chain):
            result.update(frame.vars)
        return result


class BlockReference(StepCallable):
    """One link of a block chain; calling it renders that block."""

    def __init__(
        self,
        name: str,
        context: Context,
        blocks: List[BlockFunc],
        index: int,
        frame: Optional[Frame] = None,
    ):
        self.name = name
        self._context = context
        self._blocks = blocks
        self._index = index
        self._frame = frame
        self._environment = context.environment

    @property
    def super(self) -> Any:
        """The next link in the chain."""
        if self._index + 1 >= len(self._blocks):
            return self._context.environment.undefined(
                f"there is no parent block called {self.name!r}.", name="super"
            )
        return BlockReference(self.name, self._context, self._blocks, self._index + 1, self._frame)

    def step_call(self) -> Step:
        buf: List[str] = []
        yield from self._blocks[self._index](self._context, self._frame, buf)
        rv = str_join(buf)
        if self._context.eval_ctx.autoescape:
            return Markup(rv)
        return rv


class TemplateReference:
    """The `self` variable: attribute access returns block references."""

    def __init__(self, context: Context):
        self._context = context

    def __getitem__(self, name: str) -> BlockReference:
        return BlockReference(name, self._context, self._context.blocks[name], 0)

    def __getattr__(self, name: str) -> BlockReference:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._context.name!r}>"


def call_value(frame: Frame, fn: Any, args: List[Any], kwargs: Dict[str, Any]) -> Step:
    """
    Call a value from template code.

    Step callables run inline; decorated callables receive the context,
    eval context or environment first; awaitable results are resolved.
    """
    if isinstance(fn, StepCallable):
        return (yield from fn.step_call(*args, **kwargs))
    pass_arg = PassArg.from_obj(fn)
    if pass_arg is PassArg.CONTEXT:
        args = [frame.context, *args]
    elif pass_arg is PassArg.EVAL_CONTEXT:
        args = [frame.eval_ctx, *args]
    elif pass_arg is PassArg.ENVIRONMENT:
        args = [frame.context.environment, *args]
    rv = fn(*args, **kwargs)
    return (yield from resolve(rv))


__all__ = [
    "EvalContext",
    "Context",
    "Frame",
    "BlockReference",
    "TemplateReference",
    "BlockFunc",
    "call_value",
]
