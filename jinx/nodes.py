"""
AST nodes.

Immutable node classes describing expressions and statements of a parsed
template. Nodes are pure data: produced by the parser, consumed by the
compiler. Positions (`lineno`, `colno`) are keyword-only and excluded from
equality, so two nodes compare equal when their structure does.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Iterator, Optional, Tuple, Type, TypeVar

N = TypeVar("N", bound="Node")


@dataclass(frozen=True)
class Node:
    """Base class for all AST nodes."""
    lineno: int = field(default=1, kw_only=True, compare=False, repr=False)
    colno: int = field(default=1, kw_only=True, compare=False, repr=False)

    def iter_child_nodes(self) -> Iterator["Node"]:
        """Yield direct child nodes, in field order."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Node):
                yield value
            elif isinstance(value, tuple):
                for item in value:
                    if isinstance(item, Node):
                        yield item

    def find_all(self, node_type: Type[N]) -> Iterator[N]:
        """Yield all descendant nodes of the given type (depth first)."""
        for child in self.iter_child_nodes():
            if isinstance(child, node_type):
                yield child
            yield from child.find_all(node_type)

    def find(self, node_type: Type[N]) -> Optional[N]:
        return next(self.find_all(node_type), None)


class Stmt(Node):
    """Base class for statements."""


class Expr(Node):
    """Base class for expressions."""


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Const(Expr):
    """Literal constant: string, number, boolean or none."""
    value: Any


@dataclass(frozen=True)
class TemplateData(Expr):
    """Literal template text; never escaped."""
    data: str


@dataclass(frozen=True)
class Name(Expr):
    """Variable reference. `ctx` is `load`, `store` or `param`."""
    name: str
    ctx: str = "load"


@dataclass(frozen=True)
class NSRef(Expr):
    """Namespace attribute assignment target (`ns.attr`)."""
    name: str
    attr: str


@dataclass(frozen=True)
class Getattr(Expr):
    node: Expr
    attr: str


@dataclass(frozen=True)
class Getitem(Expr):
    node: Expr
    arg: Expr


@dataclass(frozen=True)
class Slice(Expr):
    start: Optional[Expr] = None
    stop: Optional[Expr] = None
    step: Optional[Expr] = None


@dataclass(frozen=True)
class Tuple_(Expr):
    """Tuple literal or unpacking target."""
    items: Tuple[Expr, ...]
    ctx: str = "load"


@dataclass(frozen=True)
class List(Expr):
    items: Tuple[Expr, ...]


@dataclass(frozen=True)
class Pair(Expr):
    key: Expr
    value: Expr


@dataclass(frozen=True)
class Dict(Expr):
    items: Tuple[Pair, ...]


@dataclass(frozen=True)
class Keyword(Expr):
    key: str
    value: Expr


@dataclass(frozen=True)
class CondExpr(Expr):
    """`expr1 if test else expr2`; `expr2` is None for the short form."""
    test: Expr
    expr1: Expr
    expr2: Optional[Expr] = None


@dataclass(frozen=True)
class UnaryOp(Expr):
    """Unary operator: `not`, `+` or `-`."""
    op: str
    node: Expr


@dataclass(frozen=True)
class BinOp(Expr):
    """Binary operator: arithmetic, `~`, `and`, `or`."""
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Operand(Expr):
    """One `<op> <expr>` step of a comparison chain."""
    op: str
    expr: Expr


@dataclass(frozen=True)
class Compare(Expr):
    """Comparison chain `expr op1 e1 op2 e2 ...`."""
    expr: Expr
    ops: Tuple[Operand, ...]


@dataclass(frozen=True)
class Call(Expr):
    node: Expr
    args: Tuple[Expr, ...] = ()
    kwargs: Tuple[Keyword, ...] = ()
    dyn_args: Optional[Expr] = None
    dyn_kwargs: Optional[Expr] = None


@dataclass(frozen=True)
class Filter(Expr):
    """Filter application. `node` is None inside filter blocks."""
    node: Optional[Expr]
    name: str
    args: Tuple[Expr, ...] = ()
    kwargs: Tuple[Keyword, ...] = ()
    dyn_args: Optional[Expr] = None
    dyn_kwargs: Optional[Expr] = None


@dataclass(frozen=True)
class Test(Expr):
    node: Expr
    name: str
    args: Tuple[Expr, ...] = ()
    kwargs: Tuple[Keyword, ...] = ()
    dyn_args: Optional[Expr] = None
    dyn_kwargs: Optional[Expr] = None


@dataclass(frozen=True)
class MarkSafe(Expr):
    """Mark the wrapped expression's result as safe markup."""
    expr: Expr


@dataclass(frozen=True)
class ExtensionAttribute(Expr):
    """Attribute of a registered extension, looked up by identifier."""
    identifier: str
    name: str


@dataclass(frozen=True)
class ContextReference(Expr):
    """The active template context object."""


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Output(Stmt):
    nodes: Tuple[Expr, ...]


@dataclass(frozen=True)
class Assign(Stmt):
    target: Expr
    node: Expr


@dataclass(frozen=True)
class AssignBlock(Stmt):
    target: Expr
    filter: Optional[Filter]
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class If(Stmt):
    test: Expr
    body: Tuple[Node, ...]
    elif_: Tuple["If", ...] = ()
    else_: Tuple[Node, ...] = ()


@dataclass(frozen=True)
class For(Stmt):
    target: Expr
    iter: Expr
    body: Tuple[Node, ...]
    else_: Tuple[Node, ...] = ()
    test: Optional[Expr] = None
    recursive: bool = False


@dataclass(frozen=True)
class Block(Stmt):
    name: str
    body: Tuple[Node, ...]
    scoped: bool = False
    required: bool = False


@dataclass(frozen=True)
class Extends(Stmt):
    template: Expr


@dataclass(frozen=True)
class Include(Stmt):
    template: Expr
    with_context: bool = True
    ignore_missing: bool = False


@dataclass(frozen=True)
class Import(Stmt):
    template: Expr
    target: str
    with_context: bool = False


@dataclass(frozen=True)
class FromImport(Stmt):
    """`names` holds `(name, alias)` pairs; alias may be None."""
    template: Expr
    names: Tuple[Tuple[str, Optional[str]], ...]
    with_context: bool = False


@dataclass(frozen=True)
class Macro(Stmt):
    name: str
    args: Tuple[Name, ...]
    defaults: Tuple[Expr, ...]
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class CallBlock(Stmt):
    call: Call
    args: Tuple[Name, ...]
    defaults: Tuple[Expr, ...]
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class FilterBlock(Stmt):
    body: Tuple[Node, ...]
    filter: Filter


@dataclass(frozen=True)
class With(Stmt):
    targets: Tuple[Expr, ...]
    values: Tuple[Expr, ...]
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class Scope(Stmt):
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class ScopedEvalContextModifier(Stmt):
    """Changes eval-context options (e.g. autoescape) for its body only."""
    options: Tuple[Keyword, ...]
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class ExprStmt(Stmt):
    """Evaluate an expression and discard the result."""
    node: Expr


@dataclass(frozen=True)
class Break(Stmt):
    pass


@dataclass(frozen=True)
class Continue(Stmt):
    pass


@dataclass(frozen=True)
class Template(Node):
    """Root node of a parsed template."""
    body: Tuple[Node, ...]


def dump(node: Any, indent: int = 0) -> str:
    """Pretty-print an AST for debugging (used by the CLI `ast` command)."""
    pad = "  " * indent
    if isinstance(node, tuple):
        if not node:
            return "()"
        inner = ",\n".join(f"{pad}  {dump(item, indent + 1).lstrip()}" for item in node)
        return f"(\n{inner}\n{pad})"
    if not isinstance(node, Node):
        return repr(node)
    parts = []
    for f in fields(node):
        if f.name in ("lineno", "colno"):
            continue
        parts.append(f"{f.name}={dump(getattr(node, f.name), indent + 1).lstrip()}")
    return f"{pad}{type(node).__name__}({', '.join(parts)})"


__all__ = [
    "Node", "Stmt", "Expr",
    "Const", "TemplateData", "Name", "NSRef", "Getattr", "Getitem", "Slice",
    "Tuple_", "List", "Pair", "Dict", "Keyword", "CondExpr", "UnaryOp",
    "BinOp", "Operand", "Compare", "Call", "Filter", "Test", "MarkSafe",
    "ExtensionAttribute", "ContextReference",
    "Output", "Assign", "AssignBlock", "If", "For", "Block", "Extends",
    "Include", "Import", "FromImport", "Macro", "CallBlock", "FilterBlock",
    "With", "Scope", "ScopedEvalContextModifier", "ExprStmt", "Break",
    "Continue", "Template",
    "dump",
]
