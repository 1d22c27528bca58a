"""
Compiled templates and template modules.

A `Template` couples a `RenderUnit` with its environment and globals. Each
render builds a fresh `Context` and runs the inheritance state machine:
the template root runs first; once an `extends` has recorded a parent,
the parent's blocks are appended to the block chains and the parent root
runs next, up to the top of the hierarchy.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections import ChainMap
from typing import TYPE_CHECKING, Any, Callable, Mapping, MutableMapping, Optional

from markupsafe import Markup

from .errors import TemplateError
from .runtime.context import Context, Frame
from .runtime.steps import Step, drive_async, drive_sync
from .runtime.utils import str_join

if TYPE_CHECKING:
    from .compiler import RenderUnit
    from .environment import Environment

logger = logging.getLogger(__name__)


class RenderState(enum.Enum):
    """Phase of the inheritance state machine of one render."""
    RESOLVING_EXTENDS = "resolving_extends"
    BUILDING_BLOCK_CHAIN = "building_block_chain"
    EXECUTING_ROOT = "executing_root"
    DONE = "done"


class OutputBuffer(list):
    """Root output of a render; chunks are dropped while a parent is pending."""

    def __init__(self, context: Context):
        super().__init__()
        self._context = context

    def append(self, chunk: str) -> None:
        if self._context.pending_parent is None:
            super().append(chunk)


class Template:
    """
    A compiled template bound to an environment.

    Create templates through `Environment.from_string()` or
    `Environment.get_template()` rather than directly.

    Args:
        environment: Owning environment
        unit: Compiled template
        globals: Template globals (usually chained onto the environment's)
        uptodate: Callable telling whether the source is unchanged
    """

    def __init__(
        self,
        environment: "Environment",
        unit: "RenderUnit",
        globals: MutableMapping[str, Any],
        uptodate: Optional[Callable[[], bool]] = None,
    ):
        self.environment = environment
        self.unit = unit
        self.globals = globals
        self._uptodate = uptodate
        self._module: Optional[TemplateModule] = None

    @property
    def name(self) -> Optional[str]:
        return self.unit.name

    @property
    def filename(self) -> Optional[str]:
        return self.unit.filename

    @property
    def path(self) -> Optional[str]:
        """Path used in error messages."""
        return self.unit.filename or self.unit.name

    @property
    def blocks(self) -> Mapping[str, Any]:
        return self.unit.blocks

    @property
    def is_up_to_date(self) -> bool:
        if self._uptodate is None:
            return True
        return bool(self._uptodate())

    def new_context(self, vars: Optional[Mapping[str, Any]] = None) -> Context:
        """Create a render context seeing `vars` and the template globals."""
        parent = ChainMap(dict(vars or {}), self.globals)
        return Context(self.environment, parent, self.name, self.unit.blocks, globals=self.globals)

    # -- rendering ---------------------------------------------------------------

    def root_render_step(self, context: Context) -> Step:
        """
        Render the template (and its parents) in `context`.

        Errors leaving the step carry this template's path; errors raised
        while a parent root runs carry the parent path first.
        """
        buf = OutputBuffer(context)
        template = self
        context.render_state = RenderState.RESOLVING_EXTENDS
        try:
            while True:
                try:
                    yield from template.unit.root(Frame(context, toplevel=True), buf)
                except TemplateError as error:
                    if template is not self:
                        error.update(template.path)
                    raise
                parent = context.pending_parent
                if parent is None:
                    break

                context.render_state = RenderState.BUILDING_BLOCK_CHAIN
                context.pending_parent = None
                for name, block in parent.unit.blocks.items():
                    context.blocks.setdefault(name, []).append(block)
                logger.debug(f"{template.path!r} extends {parent.path!r}")

                context.render_state = RenderState.EXECUTING_ROOT
                template = parent
        except TemplateError as error:
            logger.debug(f"Render of {self.path!r} failed in state {context.render_state.name}")
            error.update(self.path)
            raise
        context.render_state = RenderState.DONE
        return str_join(buf)

    def _context_for(self, args: Any, kwargs: Any) -> Context:
        if len(args) == 1 and isinstance(args[0], Context):
            return args[0]
        return self.new_context(dict(*args, **kwargs))

    def render(self, *args: Any, **kwargs: Any) -> str:
        """
        Render the template.

        Accepts the same arguments as `dict()`. In suspending mode the
        asynchronous render runs on a fresh event loop.
        """
        if self.environment.is_async:
            return asyncio.run(self.render_async(*args, **kwargs))
        return drive_sync(self.root_render_step(self._context_for(args, kwargs)))

    async def render_async(self, *args: Any, **kwargs: Any) -> str:
        """Render the template, awaiting asynchronous values."""
        return await drive_async(self.root_render_step(self._context_for(args, kwargs)))

    def render_callback(self, context: Mapping[str, Any], callback: Callable[[Optional[Exception], Optional[str]], Any]) -> Any:
        """
        Render and deliver `(error, output)` to `callback`.

        In suspending mode the render is scheduled as a task when an event
        loop is running (the task is returned), otherwise it runs to
        completion before returning.
        """
        if not self.environment.is_async:
            try:
                output = self.render(context)
            except Exception as error:
                return callback(error, None)
            return callback(None, output)

        async def deliver():
            try:
                output = await self.render_async(context)
            except Exception as error:
                return callback(error, None)
            return callback(None, output)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(deliver())
        return loop.create_task(deliver())

    # -- modules -----------------------------------------------------------------

    def make_module_step(self, vars: Optional[Mapping[str, Any]] = None) -> Step:
        context = self.new_context(vars)
        body = yield from self.root_render_step(context)
        return TemplateModule(self, context, body)

    def make_module(self, vars: Optional[Mapping[str, Any]] = None) -> "TemplateModule":
        """Render the template and expose its exported names as attributes."""
        return drive_sync(self.make_module_step(vars))

    async def make_module_async(self, vars: Optional[Mapping[str, Any]] = None) -> "TemplateModule":
        return await drive_async(self.make_module_step(vars))

    def default_module_step(self, importer: Optional[Context] = None) -> Step:
        """
        Module for an import without context.

        Globals of the importing template that this template lacks are
        passed in; when there are none the module is built once and cached.
        """
        if importer is not None:
            keys = importer.globals_keys.difference(self.globals.keys())
            if keys:
                return (yield from self.make_module_step({k: importer.globals[k] for k in keys}))
        if self._module is None:
            self._module = yield from self.make_module_step()
        return self._module

    @property
    def module(self) -> "TemplateModule":
        return drive_sync(self.default_module_step())

    def __repr__(self) -> str:
        name = "memory:" + format(id(self), "x") if self.name is None else repr(self.name)
        return f"<{type(self).__name__} {name}>"


class TemplateModule:
    """
    Result of importing a template.

    Exported names (top-level sets and macros not starting with `_`) are
    attributes; converting the module to a string gives the rendered body.
    """

    def __init__(self, template: Template, context: Context, body: str):
        self._body = body
        self.__dict__.update(context.get_exported())
        self.__name__ = template.name

    def __html__(self) -> Markup:
        return Markup(self._body)

    def __str__(self) -> str:
        return self._body

    def __repr__(self) -> str:
        name = "memory:" + format(id(self), "x") if self.__name__ is None else repr(self.__name__)
        return f"<{type(self).__name__} {name}>"


__all__ = [
    "Template",
    "TemplateModule",
    "RenderState",
    "OutputBuffer",
]
