"""
Base interfaces for template extensions.

An extension hooks into every stage of the pipeline: it can rewrite the
source before lexing, filter the token stream, claim statement tags in the
parser and register compiler rules for the AST nodes it introduces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, ClassVar, FrozenSet, Iterable, List, Optional, Sequence, Type, Union

from .. import nodes
from ..tokens import Token, TokenStream

if TYPE_CHECKING:
    from ..compiler import CodeGenerator
    from ..environment import Environment
    from ..parser import Parser

DEFAULT_PRIORITY = 100


@dataclass(frozen=True)
class CompilerRule:
    """
    Compiler rule for an AST node type.

    `compile_func(generator, node)` must return a statement step
    `step(frame, buf)` (a generator function).
    """
    node_type: Type[nodes.Node]
    compile_func: Callable[["CodeGenerator", nodes.Node], Callable]


class Extension:
    """
    Base class for extensions.

    Subclasses set `tags` to the statement names they parse and override
    the hooks they need. The identifier defaults to the import path of the
    class so `ExtensionAttribute` nodes can find the instance again.
    """

    identifier: ClassVar[str]
    tags: ClassVar[FrozenSet[str]] = frozenset()
    priority: ClassVar[int] = DEFAULT_PRIORITY

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.identifier = f"{cls.__module__}.{cls.__name__}"

    def __init__(self, environment: "Environment"):
        self.environment = environment

    def preprocess(self, source: str, name: Optional[str], filename: Optional[str] = None) -> str:
        """Rewrite the template source before it is lexed."""
        return source

    def filter_stream(self, stream: TokenStream) -> Union[TokenStream, Iterable[Token]]:
        """Rewrite the token stream; may return any token iterable."""
        return stream

    def parse(self, parser: "Parser") -> Union[nodes.Node, List[nodes.Node]]:
        """
        Parse one of the tags listed in `tags`.

        The parser's current token is the tag name.
        """
        raise NotImplementedError()

    def register_compilers(self) -> List[CompilerRule]:
        """
        Register compiler rules for node types this extension emits.

        Returns:
            List of compiler rules
        """
        return []

    def attr(self, name: str, lineno: Optional[int] = None) -> nodes.ExtensionAttribute:
        """Node that looks up an attribute of this extension at render time."""
        return nodes.ExtensionAttribute(self.identifier, name, lineno=lineno or 1)

    def call_method(
        self,
        name: str,
        args: Sequence[nodes.Expr] = (),
        kwargs: Sequence[nodes.Keyword] = (),
        dyn_args: Optional[nodes.Expr] = None,
        dyn_kwargs: Optional[nodes.Expr] = None,
        lineno: Optional[int] = None,
    ) -> nodes.Call:
        """Node that calls a method of this extension at render time."""
        return nodes.Call(
            self.attr(name, lineno=lineno),
            tuple(args),
            tuple(kwargs),
            dyn_args,
            dyn_kwargs,
            lineno=lineno or 1,
        )


ExtensionList = List[Extension]

__all__ = [
    "CompilerRule",
    "Extension",
    "ExtensionList",
    "DEFAULT_PRIORITY",
]
