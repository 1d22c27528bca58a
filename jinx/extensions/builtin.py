"""
Built-in extensions: `do`, loop controls and `debug`.
"""

from __future__ import annotations

import pprint
from typing import TYPE_CHECKING, Any, List

from .. import nodes
from ..runtime.loops import LoopBreak, LoopContinue
from ..tokens import TokenType
from .base import CompilerRule, Extension

if TYPE_CHECKING:
    from ..compiler import CodeGenerator
    from ..parser import Parser
    from ..runtime.context import Context


class ExprStmtExtension(Extension):
    """`{% do expr %}`: evaluate an expression and discard the result."""

    tags = frozenset(["do"])

    def parse(self, parser: "Parser") -> nodes.ExprStmt:
        token = parser.stream.advance()
        return nodes.ExprStmt(parser.parse_tuple(), lineno=token.line, colno=token.column)

    def register_compilers(self) -> List[CompilerRule]:
        return [CompilerRule(nodes.ExprStmt, _compile_expr_stmt)]


def _compile_expr_stmt(generator: "CodeGenerator", node: nodes.ExprStmt):
    expr = generator.expression(node.node)

    def step(frame, buf):
        yield from expr(frame)

    return step


class LoopControlExtension(Extension):
    """`{% break %}` and `{% continue %}` inside for loops."""

    tags = frozenset(["break", "continue"])

    def parse(self, parser: "Parser") -> nodes.Node:
        token = parser.stream.advance()
        if not parser.is_inside("for"):
            parser.fail(f"'{token.value}' outside of a loop", token)
        if token.value == "break":
            return nodes.Break(lineno=token.line, colno=token.column)
        return nodes.Continue(lineno=token.line, colno=token.column)

    def register_compilers(self) -> List[CompilerRule]:
        return [
            CompilerRule(nodes.Break, _compile_loop_control),
            CompilerRule(nodes.Continue, _compile_loop_control),
        ]


def _compile_loop_control(generator: "CodeGenerator", node: nodes.Node):
    signal = LoopBreak if isinstance(node, nodes.Break) else LoopContinue

    def step(frame, buf):
        raise signal()

    return step


class DebugExtension(Extension):
    """`{% debug %}`: dump the visible context, filters and tests."""

    tags = frozenset(["debug"])

    def parse(self, parser: "Parser") -> nodes.Output:
        token = parser.stream.advance()
        if not parser.stream.match(TokenType.BLOCK_END):
            parser.fail("the debug tag takes no arguments")
        context = nodes.ContextReference(lineno=token.line)
        result = self.call_method("_render", [context], lineno=token.line)
        return nodes.Output((result,), lineno=token.line, colno=token.column)

    def _render(self, context: "Context") -> str:
        result: Any = {
            "context": context.get_all(),
            "filters": sorted(self.environment.filters.keys()),
            "tests": sorted(self.environment.tests.keys()),
        }
        return pprint.pformat(result, depth=3, compact=True)


# Short names usable in `extensions=[...]` and configuration files.
BUILTIN_EXTENSIONS = {
    "do": ExprStmtExtension,
    "loopcontrols": LoopControlExtension,
    "debug": DebugExtension,
}

__all__ = [
    "ExprStmtExtension",
    "LoopControlExtension",
    "DebugExtension",
    "BUILTIN_EXTENSIONS",
]
