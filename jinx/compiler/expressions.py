"""
Expression lowering.

Every expression node becomes a step `step(frame)`: a generator that
yields `Suspend` requests for awaitable intermediate values and returns
the value of the expression.
"""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from markupsafe import Markup

from .. import nodes
from ..errors import CompileError
from ..runtime.context import Frame, call_value
from ..runtime.steps import Step, drain, resolve
from ..runtime.utils import markup_join, str_join
from .unit import ExprStep

if TYPE_CHECKING:
    from ..environment import Environment

# Step producing `(args, kwargs)` of a call, filter or test.
ArgsStep = Callable[[Frame], Step]

_BINOPS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "**": operator.pow,
}

_UNARYOPS: Dict[str, Callable[[Any], Any]] = {
    "not": operator.not_,
    "+": operator.pos,
    "-": operator.neg,
}

_COMPARE: Dict[str, Callable[[Any, Any], Any]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda a, b: a in b,
    "notin": lambda a, b: a not in b,
}


def constant_step(value: Any) -> ExprStep:
    """Step that evaluates to a fixed value."""
    def step(frame):
        yield from ()
        return value
    return step


def evaluate_all(frame: Frame, steps: List[ExprStep]) -> Step:
    """Evaluate expression steps in order; returns the list of values."""
    values = []
    for item in steps:
        values.append((yield from item(frame)))
    return values


class ExpressionCompiler:
    """
    Lowers expression nodes to steps.

    Node classes are dispatched through `_EXPRESSIONS`; extension nodes are
    looked up in the environment's extension registry.
    """

    def __init__(self, environment: "Environment", name: Optional[str] = None, filename: Optional[str] = None):
        self.environment = environment
        self.name = name
        self.filename = filename

    def fail(self, message: str, node: nodes.Node) -> None:
        raise CompileError(message, node.lineno, node.colno, self.name, self.filename)

    def expression(self, node: nodes.Expr) -> ExprStep:
        """Compile an expression node."""
        method = self._EXPRESSIONS.get(type(node))
        if method is not None:
            return method(self, node)
        rule = self.environment.registry.compiler_for(type(node))
        if rule is None:
            self.fail(f"no compiler rule for expression node {type(node).__name__!r}", node)
        return rule.compile_func(self, node)

    # -- literals and names ---------------------------------------------------

    def _const(self, node: nodes.Const) -> ExprStep:
        return constant_step(node.value)

    def _template_data(self, node: nodes.TemplateData) -> ExprStep:
        return constant_step(node.data)

    def _name(self, node: nodes.Name) -> ExprStep:
        name = node.name

        def step(frame):
            return (yield from resolve(frame.lookup(name)))

        return step

    def _sequence(self, items: Tuple[nodes.Expr, ...], factory: Callable[[List[Any]], Any]) -> ExprStep:
        steps = [self.expression(item) for item in items]

        def step(frame):
            return factory((yield from evaluate_all(frame, steps)))

        return step

    def _tuple(self, node: nodes.Tuple_) -> ExprStep:
        return self._sequence(node.items, tuple)

    def _list(self, node: nodes.List) -> ExprStep:
        return self._sequence(node.items, list)

    def _dict(self, node: nodes.Dict) -> ExprStep:
        pairs = [(self.expression(pair.key), self.expression(pair.value)) for pair in node.items]

        def step(frame):
            result = {}
            for key_step, value_step in pairs:
                key = yield from key_step(frame)
                result[key] = yield from value_step(frame)
            return result

        return step

    # -- attribute and item access -------------------------------------------

    def _getattr(self, node: nodes.Getattr) -> ExprStep:
        obj_step = self.expression(node.node)
        attr = node.attr
        environment = self.environment

        def step(frame):
            obj = yield from obj_step(frame)
            return (yield from resolve(environment.getattr(obj, attr)))

        return step

    def _getitem(self, node: nodes.Getitem) -> ExprStep:
        obj_step = self.expression(node.node)
        arg_step = self.expression(node.arg)
        environment = self.environment

        def step(frame):
            obj = yield from obj_step(frame)
            arg = yield from arg_step(frame)
            return (yield from resolve(environment.getitem(obj, arg)))

        return step

    def _slice(self, node: nodes.Slice) -> ExprStep:
        parts = [self.expression(part) if part is not None else None for part in (node.start, node.stop, node.step)]

        def step(frame):
            values = []
            for part in parts:
                values.append((yield from part(frame)) if part is not None else None)
            return slice(*values)

        return step

    # -- operators -----------------------------------------------------------

    def _cond_expr(self, node: nodes.CondExpr) -> ExprStep:
        test = self.expression(node.test)
        expr1 = self.expression(node.expr1)
        expr2 = self.expression(node.expr2) if node.expr2 is not None else None
        hint = (
            f"the inline if-expression on line {node.lineno} evaluated "
            "to false and no else section was defined."
        )
        environment = self.environment

        def step(frame):
            if (yield from test(frame)):
                return (yield from expr1(frame))
            if expr2 is not None:
                return (yield from expr2(frame))
            return environment.undefined(hint)

        return step

    def _unary_op(self, node: nodes.UnaryOp) -> ExprStep:
        operand = self.expression(node.node)
        func = _UNARYOPS[node.op]

        def step(frame):
            return func((yield from operand(frame)))

        return step

    def _bin_op(self, node: nodes.BinOp) -> ExprStep:
        left = self.expression(node.left)
        right = self.expression(node.right)
        op = node.op

        if op == "and":
            def step(frame):
                value = yield from left(frame)
                if not value:
                    return value
                return (yield from right(frame))
        elif op == "or":
            def step(frame):
                value = yield from left(frame)
                if value:
                    return value
                return (yield from right(frame))
        elif op == "~":
            def step(frame):
                values = [(yield from left(frame)), (yield from right(frame))]
                if frame.eval_ctx.autoescape:
                    return markup_join(values)
                return str_join(values)
        else:
            func = _BINOPS[op]

            def step(frame):
                a = yield from left(frame)
                b = yield from right(frame)
                return func(a, b)

        return step

    def _compare(self, node: nodes.Compare) -> ExprStep:
        first = self.expression(node.expr)
        ops = [(_COMPARE[operand.op], self.expression(operand.expr)) for operand in node.ops]

        def step(frame):
            value = yield from first(frame)
            for func, other_step in ops:
                other = yield from other_step(frame)
                if not func(value, other):
                    return False
                value = other
            return True

        return step

    def _mark_safe(self, node: nodes.MarkSafe) -> ExprStep:
        inner = self.expression(node.expr)

        def step(frame):
            return Markup((yield from inner(frame)))

        return step

    # -- calls, filters and tests ---------------------------------------------

    def arguments(self, node: Any) -> ArgsStep:
        """Compile the argument list of a `Call`, `Filter` or `Test` node."""
        positional = [self.expression(arg) for arg in node.args]
        keywords = [(kw.key, self.expression(kw.value)) for kw in node.kwargs]
        dyn_args = self.expression(node.dyn_args) if node.dyn_args is not None else None
        dyn_kwargs = self.expression(node.dyn_kwargs) if node.dyn_kwargs is not None else None

        def step(frame):
            args = yield from evaluate_all(frame, positional)
            if dyn_args is not None:
                extra = yield from dyn_args(frame)
                args.extend((yield from drain(extra)))
            kwargs = {}
            for key, value_step in keywords:
                kwargs[key] = yield from value_step(frame)
            if dyn_kwargs is not None:
                kwargs.update((yield from dyn_kwargs(frame)))
            return args, kwargs

        return step

    def _call(self, node: nodes.Call) -> ExprStep:
        func_step = self.expression(node.node)
        arguments = self.arguments(node)

        def step(frame):
            func = yield from func_step(frame)
            args, kwargs = yield from arguments(frame)
            return (yield from call_value(frame, func, args, kwargs))

        return step

    def filter_applier(self, node: nodes.Filter) -> Callable[[Frame, Any], Step]:
        """
        Compile a filter chain whose innermost input is supplied by the caller.

        `{% filter %}` blocks and `{% set x | f %}` produce chains that end
        in a `Filter` with no input node; the rendered body is fed in there.
        """
        inner = self.filter_applier(node.node) if isinstance(node.node, nodes.Filter) else None
        if node.node is not None and inner is None:
            self.fail("filter chain with an input expression used as a block filter", node)
        apply = self._filter_call(node)

        def step(frame, value):
            if inner is not None:
                value = yield from inner(frame, value)
            return (yield from apply(frame, value))

        return step

    def _filter_call(self, node: nodes.Filter) -> Callable[[Frame, Any], Step]:
        name = node.name
        arguments = self.arguments(node)
        environment = self.environment

        def step(frame, value):
            value = yield from resolve(value)
            value = yield from drain(value)
            args, kwargs = yield from arguments(frame)
            rv = environment.call_filter(name, value, args, kwargs, context=frame.context, eval_ctx=frame.eval_ctx)
            return (yield from resolve(rv))

        return step

    def _filter(self, node: nodes.Filter) -> ExprStep:
        if node.node is None:
            self.fail("filter without input outside of a filter block", node)
        value_step = self.expression(node.node)
        apply = self._filter_call(node)

        def step(frame):
            value = yield from value_step(frame)
            return (yield from apply(frame, value))

        return step

    def _test(self, node: nodes.Test) -> ExprStep:
        value_step = self.expression(node.node)
        name = node.name
        arguments = self.arguments(node)
        environment = self.environment

        def step(frame):
            value = yield from value_step(frame)
            value = yield from drain((yield from resolve(value)))
            args, kwargs = yield from arguments(frame)
            rv = environment.call_test(name, value, args, kwargs, context=frame.context, eval_ctx=frame.eval_ctx)
            return bool((yield from resolve(rv)))

        return step

    # -- extension support ------------------------------------------------------

    def _extension_attribute(self, node: nodes.ExtensionAttribute) -> ExprStep:
        environment = self.environment
        identifier, attr = node.identifier, node.name

        def step(frame):
            yield from ()
            return getattr(environment.extensions[identifier], attr)

        return step

    def _context_reference(self, node: nodes.ContextReference) -> ExprStep:
        def step(frame):
            yield from ()
            return frame.context

        return step

    _EXPRESSIONS: Dict[type, Callable[["ExpressionCompiler", Any], ExprStep]] = {
        nodes.Const: _const,
        nodes.TemplateData: _template_data,
        nodes.Name: _name,
        nodes.Tuple_: _tuple,
        nodes.List: _list,
        nodes.Dict: _dict,
        nodes.Getattr: _getattr,
        nodes.Getitem: _getitem,
        nodes.Slice: _slice,
        nodes.CondExpr: _cond_expr,
        nodes.UnaryOp: _unary_op,
        nodes.BinOp: _bin_op,
        nodes.Compare: _compare,
        nodes.MarkSafe: _mark_safe,
        nodes.Call: _call,
        nodes.Filter: _filter,
        nodes.Test: _test,
        nodes.ExtensionAttribute: _extension_attribute,
        nodes.ContextReference: _context_reference,
    }


__all__ = ["ExpressionCompiler", "constant_step", "evaluate_all"]
