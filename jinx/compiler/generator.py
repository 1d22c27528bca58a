"""
Statement lowering and template compilation.

`CodeGenerator.compile()` turns a `nodes.Template` into a `RenderUnit`.
Statements become steps `step(frame, buf)` that append output chunks to
`buf` in source order. Blocks are hoisted out of the body: each one is
compiled once into `RenderUnit.blocks` and its place in the body becomes
an invocation of the current chain head for that name.

Every statement is wrapped so that a `TemplateError` raised anywhere below
it gets the statement position unless a deeper statement already set one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Tuple

from markupsafe import Markup

from .. import nodes
from ..errors import TemplateAssertionError, TemplateError, TemplateNotFound, TemplateRuntimeError
from ..runtime.context import BlockFunc, Frame, call_value
from ..runtime.loops import FilteredStepIterator, LoopBreak, LoopContext, LoopContinue
from ..runtime.macros import Macro
from ..runtime.steps import EXHAUSTED, Step, StepIterator
from ..runtime.utils import Namespace, str_join, to_output
from .expressions import ExpressionCompiler
from .unit import BodyStep, ExprStep, RenderUnit

if TYPE_CHECKING:
    from ..environment import Environment

logger = logging.getLogger(__name__)

# Binds a value to an assignment target: `assign(frame, value)`.
Assigner = Callable[[Frame, Any], None]


def _empty_body(frame, buf):
    yield from ()


def _referenced_names(body: Tuple[nodes.Node, ...]) -> Set[str]:
    """Names loaded in a macro body, not descending into nested macros."""
    names: Set[str] = set()

    def visit(node: nodes.Node) -> None:
        if isinstance(node, nodes.Name) and node.ctx == "load":
            names.add(node.name)
        for child in node.iter_child_nodes():
            if not isinstance(child, nodes.Macro):
                visit(child)

    for node in body:
        visit(node)
    return names


def _unpack(value: Any, count: int) -> Tuple[Any, ...]:
    items = tuple(value)
    if len(items) < count:
        raise ValueError(f"not enough values to unpack (expected {count}, got {len(items)})")
    if len(items) > count:
        raise ValueError(f"too many values to unpack (expected {count})")
    return items


def _captured(frame: Frame, buf: List[str]) -> str:
    rv = str_join(buf)
    if frame.eval_ctx.autoescape:
        return Markup(rv)
    return rv


class CodeGenerator(ExpressionCompiler):
    """
    Compiles a template AST into a `RenderUnit`.

    Args:
        environment: Environment providing filters, tests, loaders and the
            extension registry
        name: Template name (used for error positions and import hints)
        filename: Template filename
    """

    def __init__(self, environment: "Environment", name: Optional[str] = None, filename: Optional[str] = None):
        super().__init__(environment, name, filename)
        self._blocks: Dict[str, BlockFunc] = {}
        self._required: Set[str] = set()

    def compile(self, template: nodes.Template) -> RenderUnit:
        """
        Compile a parsed template.

        Raises:
            TemplateAssertionError: If a block name is defined twice
            CompileError: If a node has no compiler rule
        """
        seen: Set[str] = set()
        for block in template.find_all(nodes.Block):
            if block.name in seen:
                raise TemplateAssertionError(
                    f"block {block.name!r} defined twice", block.lineno, self.name, self.filename, colno=block.colno
                )
            seen.add(block.name)
            self._blocks[block.name] = self._block_function(block)
            if block.required:
                self._required.add(block.name)

        root = self.statements(template.body)
        logger.debug(f"Compiled template {self.name!r}: {len(self._blocks)} block(s)")
        return RenderUnit(
            name=self.name,
            filename=self.filename,
            root=root,
            blocks=dict(self._blocks),
            required=frozenset(self._required),
        )

    # -- statement plumbing -----------------------------------------------------

    def located(self, step: Callable[..., Step], node: nodes.Node) -> Callable[..., Step]:
        """Wrap a step so template errors below it carry the node position."""
        lineno, colno, name, filename = node.lineno, node.colno, self.name, self.filename

        def wrapper(*args):
            try:
                return (yield from step(*args))
            except TemplateError as error:
                error.locate(lineno, colno, name, filename)
                raise

        return wrapper

    def statement(self, node: nodes.Node) -> BodyStep:
        """Compile a single statement node."""
        method = self._STATEMENTS.get(type(node))
        if method is not None:
            return method(self, node)
        rule = self.environment.registry.compiler_for(type(node))
        if rule is None:
            self.fail(f"no compiler rule for node {type(node).__name__!r}", node)
        return rule.compile_func(self, node)

    def statements(self, body: Tuple[nodes.Node, ...]) -> BodyStep:
        """Compile a statement list into one step."""
        steps = [self.located(self.statement(node), node) for node in body]
        if not steps:
            return _empty_body
        if len(steps) == 1:
            return steps[0]

        def step(frame, buf):
            for item in steps:
                yield from item(frame, buf)

        return step

    def assigner(self, target: nodes.Expr) -> Assigner:
        """Compile an assignment target (name, tuple or namespace attribute)."""
        if isinstance(target, nodes.Name):
            name = target.name
            return lambda frame, value: frame.set(name, value)

        if isinstance(target, nodes.Tuple_):
            subs = [self.assigner(item) for item in target.items]

            def assign_tuple(frame, value):
                for sub, item in zip(subs, _unpack(value, len(subs))):
                    sub(frame, item)

            return assign_tuple

        if isinstance(target, nodes.NSRef):
            name, attr = target.name, target.attr

            def assign_attr(frame, value):
                namespace = frame.lookup(name)
                if not isinstance(namespace, Namespace):
                    raise TemplateRuntimeError("Cannot assign attribute on non-namespace object")
                namespace[attr] = value

            return assign_attr

        self.fail(f"cannot assign to {type(target).__name__!r}", target)

    # -- output and assignment --------------------------------------------------

    def _output(self, node: nodes.Output) -> BodyStep:
        parts: List[Any] = []
        for child in node.nodes:
            if isinstance(child, nodes.TemplateData):
                parts.append(child.data)
            else:
                parts.append(self.located(self.expression(child), child))

        def step(frame, buf):
            for part in parts:
                if isinstance(part, str):
                    buf.append(part)
                else:
                    value = yield from part(frame)
                    buf.append(to_output(value, frame.eval_ctx.autoescape))

        return step

    def _assign(self, node: nodes.Assign) -> BodyStep:
        value_step = self.expression(node.node)
        assign = self.assigner(node.target)

        def step(frame, buf):
            assign(frame, (yield from value_step(frame)))

        return step

    def _assign_block(self, node: nodes.AssignBlock) -> BodyStep:
        body = self.statements(node.body)
        apply = self.filter_applier(node.filter) if node.filter is not None else None
        assign = self.assigner(node.target)

        def step(frame, buf):
            captured: List[str] = []
            yield from body(frame.child(), captured)
            value = _captured(frame, captured)
            if apply is not None:
                value = yield from apply(frame, value)
            assign(frame, value)

        return step

    # -- control flow ---------------------------------------------------------

    def _if(self, node: nodes.If) -> BodyStep:
        branches = [(self.expression(node.test), self.statements(node.body))]
        for elif_ in node.elif_:
            branches.append((self.expression(elif_.test), self.statements(elif_.body)))
        else_ = self.statements(node.else_) if node.else_ else None

        def step(frame, buf):
            for test, body in branches:
                if (yield from test(frame)):
                    yield from body(frame, buf)
                    return
            if else_ is not None:
                yield from else_(frame, buf)

        return step

    def _for(self, node: nodes.For) -> BodyStep:
        iter_step = self.expression(node.iter)
        assign = self.assigner(node.target)
        body = self.statements(node.body)
        else_ = self.statements(node.else_) if node.else_ else None
        test = self.expression(node.test) if node.test is not None else None
        recursive = node.recursive
        environment = self.environment

        def run(frame, iterable, buf, depth0):
            iterator = StepIterator(iterable)
            length = None
            if test is None:
                if hasattr(iterable, "__len__"):
                    length = len(iterable)
            else:
                def accept(item):
                    scope = frame.child()
                    assign(scope, item)
                    return (yield from test(scope))

                iterator = FilteredStepIterator(iterator, accept)

            recurse = None
            if recursive:
                def recurse(nested, depth):
                    captured: List[str] = []
                    yield from run(frame, nested, captured, depth)
                    return _captured(frame, captured)

            loop = LoopContext(iterator, environment, length, recurse, depth0)
            yield from loop.start()
            iterated = False
            while True:
                item = yield from loop.advance()
                if item is EXHAUSTED:
                    break
                iterated = True
                scope = frame.child(loop=loop)
                assign(scope, item)
                try:
                    yield from body(scope, buf)
                except LoopContinue:
                    continue
                except LoopBreak:
                    break

            if not iterated and else_ is not None:
                yield from else_(frame, buf)

        def step(frame, buf):
            iterable = yield from iter_step(frame)
            yield from run(frame, iterable, buf, 0)

        return step

    def _with(self, node: nodes.With) -> BodyStep:
        bindings = [(self.assigner(target), self.expression(value)) for target, value in zip(node.targets, node.values)]
        body = self.statements(node.body)

        def step(frame, buf):
            scope = frame.child()
            for assign, value_step in bindings:
                assign(scope, (yield from value_step(frame)))
            yield from body(scope, buf)

        return step

    def _scope(self, node: nodes.Scope) -> BodyStep:
        body = self.statements(node.body)

        def step(frame, buf):
            yield from body(frame.child(), buf)

        return step

    def _eval_context_modifier(self, node: nodes.ScopedEvalContextModifier) -> BodyStep:
        options = [(option.key, self.expression(option.value)) for option in node.options]
        body = self.statements(node.body)

        def step(frame, buf):
            eval_ctx = frame.eval_ctx
            saved = eval_ctx.save()
            try:
                for key, value_step in options:
                    setattr(eval_ctx, key, (yield from value_step(frame)))
                yield from body(frame, buf)
            finally:
                eval_ctx.revert(saved)

        return step

    def _filter_block(self, node: nodes.FilterBlock) -> BodyStep:
        body = self.statements(node.body)
        apply = self.filter_applier(node.filter)

        def step(frame, buf):
            captured: List[str] = []
            yield from body(frame.child(), captured)
            value = yield from apply(frame, _captured(frame, captured))
            buf.append(to_output(value, frame.eval_ctx.autoescape))

        return step

    # -- macros -----------------------------------------------------------------

    def _macro_factory(self, name: str, args: Tuple[nodes.Name, ...], defaults: Tuple[nodes.Expr, ...],
                       body: Tuple[nodes.Node, ...]) -> Callable[[Frame], Macro]:
        body_step = self.statements(body)
        default_steps = [self.expression(default) for default in defaults]
        arguments = [arg.name for arg in args]
        referenced = _referenced_names(body)
        environment = self.environment

        def make(frame):
            return Macro(
                environment,
                body_step,
                name,
                arguments,
                default_steps,
                frame,
                catch_kwargs="kwargs" in referenced,
                catch_varargs="varargs" in referenced,
                caller="caller" in referenced,
            )

        return make

    def _macro(self, node: nodes.Macro) -> BodyStep:
        make = self._macro_factory(node.name, node.args, node.defaults, node.body)
        name = node.name

        def step(frame, buf):
            yield from ()
            frame.set(name, make(frame))

        return step

    def _call_block(self, node: nodes.CallBlock) -> BodyStep:
        make_caller = self._macro_factory("caller", node.args, node.defaults, node.body)
        func_step = self.expression(node.call.node)
        arguments = self.arguments(node.call)

        def step(frame, buf):
            func = yield from func_step(frame)
            args, kwargs = yield from arguments(frame)
            if "caller" in kwargs:
                raise TypeError(
                    f"macro {getattr(func, 'name', None)!r} was invoked with two values for the special "
                    "caller argument. This is most likely a bug."
                )
            kwargs["caller"] = make_caller(frame)
            rv = yield from call_value(frame, func, args, kwargs)
            buf.append(to_output(rv, frame.eval_ctx.autoescape))

        return step

    # -- inheritance ------------------------------------------------------------

    def _block_function(self, node: nodes.Block) -> BlockFunc:
        body = self.statements(node.body)
        name, required = node.name, node.required

        def block(context, frame, buf):
            if required:
                raise TemplateRuntimeError(f"Required block {name!r} not found")
            scope = Frame(context, parent=frame)
            scope.vars["super"] = context.super(name, block, frame)
            yield from body(scope, buf)

        return block

    def _block(self, node: nodes.Block) -> BodyStep:
        name, scoped = node.name, node.scoped

        def step(frame, buf):
            context = frame.context
            if context.pending_parent is not None:
                return
            # Scoped blocks see the variables of the place they are rendered at.
            yield from context.blocks[name][0](context, frame if scoped else None, buf)

        return step

    def _extends(self, node: nodes.Extends) -> BodyStep:
        template_step = self.expression(node.template)
        environment = self.environment
        current = self.name

        def step(frame, buf):
            context = frame.context
            if context.pending_parent is not None:
                raise TemplateRuntimeError("extended multiple times")
            target = yield from template_step(frame)
            context.pending_parent = yield from environment.get_template_step(target, parent=current)

        return step

    # -- include and import -----------------------------------------------------

    def _include(self, node: nodes.Include) -> BodyStep:
        template_step = self.expression(node.template)
        with_context, ignore_missing = node.with_context, node.ignore_missing
        environment = self.environment
        current = self.name

        def step(frame, buf):
            target = yield from template_step(frame)
            try:
                template = yield from environment.get_or_select_template_step(target, parent=current)
            except TemplateNotFound:
                if ignore_missing:
                    return
                raise
            if with_context:
                context = template.new_context(frame.collect())
            else:
                context = template.new_context()
            buf.append((yield from template.root_render_step(context)))

        return step

    def _module_step(self, node: Any) -> ExprStep:
        template_step = self.expression(node.template)
        with_context = node.with_context
        environment = self.environment
        current = self.name

        def step(frame):
            target = yield from template_step(frame)
            template = yield from environment.get_template_step(target, parent=current)
            if with_context:
                return (yield from template.make_module_step(frame.collect()))
            return (yield from template.default_module_step(frame.context))

        return step

    def _import(self, node: nodes.Import) -> BodyStep:
        module_step = self._module_step(node)
        target = node.target

        def step(frame, buf):
            frame.set(target, (yield from module_step(frame)), export=False)

        return step

    def _from_import(self, node: nodes.FromImport) -> BodyStep:
        module_step = self._module_step(node)
        names = [(name, alias or name) for name, alias in node.names]
        lineno = node.lineno
        environment = self.environment

        def step(frame, buf):
            module = yield from module_step(frame)
            for name, alias in names:
                if hasattr(module, name):
                    value = getattr(module, name)
                else:
                    value = environment.undefined(
                        f"the template {module.__name__!r} (imported on line {lineno}) "
                        f"does not export the requested name {name!r}",
                        name=alias,
                    )
                frame.set(alias, value, export=False)

        return step

    _STATEMENTS: Dict[type, Callable[["CodeGenerator", Any], BodyStep]] = {
        nodes.Output: _output,
        nodes.Assign: _assign,
        nodes.AssignBlock: _assign_block,
        nodes.If: _if,
        nodes.For: _for,
        nodes.With: _with,
        nodes.Scope: _scope,
        nodes.ScopedEvalContextModifier: _eval_context_modifier,
        nodes.FilterBlock: _filter_block,
        nodes.Macro: _macro,
        nodes.CallBlock: _call_block,
        nodes.Block: _block,
        nodes.Extends: _extends,
        nodes.Include: _include,
        nodes.Import: _import,
        nodes.FromImport: _from_import,
    }


__all__ = ["CodeGenerator"]
