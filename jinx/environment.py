"""
The environment: configuration, template loading and plugin dispatch.

An `Environment` owns the lexer configuration, the extension registry,
filters, tests and globals, and a cache of compiled templates. Templates
are always created through it.
"""

from __future__ import annotations

import importlib
import logging
import weakref
from collections import ChainMap, OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Type, Union

from . import nodes
from .compiler import CodeGenerator, RenderUnit
from .errors import TemplateNotFound, TemplateRuntimeError, TemplatesNotFound, UndefinedError
from .extensions import BUILTIN_EXTENSIONS, Extension, ExtensionRegistry
from .filters import DEFAULT_FILTERS
from .lexer import Lexer, LexerConfig
from .loaders import BaseLoader
from .parser import Parser
from .runtime.context import EvalContext
from .runtime.steps import Step, drive_async, drive_sync
from .runtime.undefined import Undefined
from .runtime.utils import DEFAULT_GLOBALS, PassArg
from .template import Template
from .tests import DEFAULT_TESTS
from .tokens import Token, TokenStream

logger = logging.getLogger(__name__)

ExtensionSpec = Union[str, Type[Extension]]


def import_string(import_name: str) -> Any:
    """Import an object by dotted path (`package.module.Name` or `package.module:Name`)."""
    if ":" in import_name:
        module, obj = import_name.split(":", 1)
    elif "." in import_name:
        module, _, obj = import_name.rpartition(".")
    else:
        return importlib.import_module(import_name)
    return getattr(importlib.import_module(module), obj)


class Environment:
    """
    Shared configuration for a set of templates.

    Args:
        block_start_string: Opening delimiter of statement tags
        block_end_string: Closing delimiter of statement tags
        variable_start_string: Opening delimiter of expression tags
        variable_end_string: Closing delimiter of expression tags
        comment_start_string: Opening delimiter of comments
        comment_end_string: Closing delimiter of comments
        line_statement_prefix: Prefix turning a line into a statement
        line_comment_prefix: Prefix turning the rest of a line into a comment
        trim_blocks: Remove the first newline after a block tag
        lstrip_blocks: Strip whitespace before a block tag at line start
        newline_sequence: Newline used in the output
        keep_trailing_newline: Keep a single trailing newline of the source
        extensions: Extension classes, dotted import paths or built-in
            short names (`do`, `loopcontrols`, `debug`)
        autoescape: Bool or predicate on the template name
        loader: Template loader
        undefined: Class used for undefined values
        cache_size: Number of compiled templates kept; 0 disables caching,
            a negative value means unbounded
        auto_reload: Recompile cached templates whose source changed
        enable_async: Render in suspending mode
        globals: Extra global variables
        filters: Extra filters
        tests: Extra tests
    """

    template_class: Type[Template] = Template

    def __init__(
        self,
        block_start_string: str = "{%",
        block_end_string: str = "%}",
        variable_start_string: str = "{{",
        variable_end_string: str = "}}",
        comment_start_string: str = "{#",
        comment_end_string: str = "#}",
        line_statement_prefix: Optional[str] = None,
        line_comment_prefix: Optional[str] = None,
        trim_blocks: bool = False,
        lstrip_blocks: bool = False,
        newline_sequence: str = "\n",
        keep_trailing_newline: bool = False,
        extensions: Sequence[ExtensionSpec] = (),
        autoescape: Union[bool, Callable[[Optional[str]], bool]] = False,
        loader: Optional[BaseLoader] = None,
        undefined: Type[Undefined] = Undefined,
        cache_size: int = 400,
        auto_reload: bool = True,
        enable_async: bool = False,
        globals: Optional[Mapping[str, Any]] = None,
        filters: Optional[Mapping[str, Callable]] = None,
        tests: Optional[Mapping[str, Callable]] = None,
    ):
        if not issubclass(undefined, Undefined):
            raise TypeError("undefined must be a subclass of Undefined")

        self.lexer_config = LexerConfig(
            block_start=block_start_string,
            block_end=block_end_string,
            variable_start=variable_start_string,
            variable_end=variable_end_string,
            comment_start=comment_start_string,
            comment_end=comment_end_string,
            line_statement_prefix=line_statement_prefix,
            line_comment_prefix=line_comment_prefix,
            trim_blocks=trim_blocks,
            lstrip_blocks=lstrip_blocks,
            newline_sequence=newline_sequence,
            keep_trailing_newline=keep_trailing_newline,
        )
        self.lexer = Lexer(self.lexer_config)
        self.autoescape = autoescape
        self.loader = loader
        self.undefined = undefined
        self.auto_reload = auto_reload
        self.enable_async = enable_async

        self.globals: Dict[str, Any] = dict(DEFAULT_GLOBALS)
        self.globals.update(globals or {})
        self.filters: Dict[str, Callable] = dict(DEFAULT_FILTERS)
        self.filters.update(filters or {})
        self.tests: Dict[str, Callable] = dict(DEFAULT_TESTS)
        self.tests.update(tests or {})

        self.cache_size = cache_size
        self._cache: Optional[OrderedDict] = OrderedDict() if cache_size != 0 else None

        self.registry = ExtensionRegistry()
        for extension in extensions:
            self.add_extension(extension)

    @property
    def is_async(self) -> bool:
        return self.enable_async

    @property
    def extensions(self) -> Dict[str, Extension]:
        """Registered extensions by identifier."""
        return self.registry.extensions

    def add_extension(self, extension: ExtensionSpec) -> Extension:
        """
        Instantiate and register an extension.

        Args:
            extension: Extension class, dotted import path or built-in short name
        """
        if isinstance(extension, str):
            extension = BUILTIN_EXTENSIONS.get(extension) or import_string(extension)
        instance = extension(self)
        self.registry.register(instance)
        return instance

    # -- source to unit ---------------------------------------------------------

    def preprocess(self, source: str, name: Optional[str] = None, filename: Optional[str] = None) -> str:
        """Run the source through the preprocess hook of every extension."""
        return self.registry.preprocess(source, name, filename)

    def lex(self, source: str, name: Optional[str] = None, filename: Optional[str] = None) -> List[Token]:
        """
        Tokenize the source without extension stream filters.

        Useful for debugging delimiter configurations.
        """
        return list(self.lexer.tokeniter(self.preprocess(source, name, filename), name, filename))

    def _tokenize(self, source: str, name: Optional[str], filename: Optional[str]) -> TokenStream:
        source = self.preprocess(source, name, filename)
        stream = self.lexer.tokenize(source, name, filename)
        return self.registry.filter_stream(stream)

    def parse(self, source: str, name: Optional[str] = None, filename: Optional[str] = None) -> nodes.Template:
        """Parse the source into an AST."""
        stream = self._tokenize(source, name, filename)
        return Parser(stream, self.registry.tag_parsers(), name, filename).parse()

    def compile(
        self,
        source: Union[str, nodes.Template],
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> RenderUnit:
        """Compile source text or an AST into a render unit."""
        if isinstance(source, str):
            source = self.parse(source, name, filename)
        logger.debug(f"Compiling template {name!r}")
        return CodeGenerator(self, name, filename).compile(source)

    # -- template loading --------------------------------------------------------

    def make_globals(self, d: Optional[Mapping[str, Any]] = None) -> ChainMap:
        """Globals of a template: its own `d` layered over the environment globals."""
        return ChainMap(dict(d or {}), self.globals)

    def from_string(
        self,
        source: Union[str, nodes.Template],
        globals: Optional[Mapping[str, Any]] = None,
        template_class: Optional[Type[Template]] = None,
    ) -> Template:
        """Compile a template from a string (not cached)."""
        cls = template_class or self.template_class
        return cls(self, self.compile(source), self.make_globals(globals))

    def join_path(self, template: str, parent: Optional[str]) -> str:
        """
        Resolve a template name relative to the template that references it.

        Names are absolute by default; override for relative lookups.
        """
        return template

    def list_templates(
        self,
        extensions: Optional[Iterable[str]] = None,
        filter_func: Optional[Callable[[str], bool]] = None,
    ) -> List[str]:
        """List the templates of the loader, optionally filtered."""
        if self.loader is None:
            raise TypeError("no loader for this environment specified")
        names = self.loader.list_templates()
        if extensions is not None:
            if filter_func is not None:
                raise TypeError("either extensions or filter_func can be passed, but not both")
            suffixes = tuple(f".{ext}" for ext in extensions)
            return [name for name in names if name.endswith(suffixes)]
        if filter_func is not None:
            return [name for name in names if filter_func(name)]
        return names

    def _cache_key(self, name: str) -> Any:
        return weakref.ref(self.loader), name

    def _load_template_step(self, name: str, globals: Optional[Mapping[str, Any]]) -> Step:
        if self.loader is None:
            raise TypeError("no loader for this environment specified")
        if self._cache is not None:
            key = self._cache_key(name)
            template = self._cache.get(key)
            if template is not None and (not self.auto_reload or template.is_up_to_date):
                self._cache.move_to_end(key)
                if globals:
                    template.globals.update(globals)
                logger.debug(f"Template cache hit: {name!r}")
                return template
            logger.debug(f"Template cache miss: {name!r}")

        template = yield from self.loader.load_step(self, name, globals)
        if self._cache is not None:
            self._cache[key] = template
            if 0 < self.cache_size < len(self._cache):
                self._cache.popitem(last=False)
        return template

    def get_template_step(
        self,
        name: Union[str, Template, Undefined],
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Step:
        """Step form of `get_template()`, used by compiled templates."""
        if isinstance(name, Template):
            return name
        if isinstance(name, Undefined):
            name._fail_with_undefined_error()
        if parent is not None:
            name = self.join_path(name, parent)
        return (yield from self._load_template_step(name, globals))

    def select_template_step(
        self,
        names: Iterable[Union[str, Template]],
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Step:
        """Step form of `select_template()`; candidates are tried one after another."""
        if isinstance(names, Undefined):
            names._fail_with_undefined_error()
        names = list(names)
        if not names:
            raise TemplatesNotFound(message="Tried to select from an empty list of templates.")
        for name in names:
            if isinstance(name, Template):
                return name
            try:
                return (yield from self.get_template_step(name, parent, globals))
            except (TemplateNotFound, UndefinedError):
                logger.debug(f"Template candidate {name!r} not found")
        raise TemplatesNotFound(names)

    def get_or_select_template_step(
        self,
        target: Any,
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Step:
        if isinstance(target, (str, Undefined, Template)):
            return (yield from self.get_template_step(target, parent, globals))
        return (yield from self.select_template_step(target, parent, globals))

    def get_template(
        self,
        name: Union[str, Template],
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Template:
        """
        Load a template by name, from the cache when possible.

        Raises:
            TemplateNotFound: If the loader has no such template
        """
        return drive_sync(self.get_template_step(name, parent, globals))

    async def get_template_async(
        self,
        name: Union[str, Template],
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Template:
        """Like `get_template()`, awaiting asynchronous loaders."""
        return await drive_async(self.get_template_step(name, parent, globals))

    def select_template(
        self,
        names: Iterable[Union[str, Template]],
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Template:
        """
        Load the first template of `names` that exists.

        Raises:
            TemplatesNotFound: If none of them exists
        """
        return drive_sync(self.select_template_step(names, parent, globals))

    def get_or_select_template(
        self,
        template_name_or_list: Any,
        parent: Optional[str] = None,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Template:
        """`get_template()` for a name or template, `select_template()` for a list."""
        return drive_sync(self.get_or_select_template_step(template_name_or_list, parent, globals))

    def render(self, name: str, *args: Any, **kwargs: Any) -> str:
        """Load a template and render it with the given variables."""
        return self.get_template(name).render(*args, **kwargs)

    # -- runtime hooks -----------------------------------------------------------

    def getattr(self, obj: Any, attribute: str) -> Any:
        """Attribute lookup for `obj.attribute`; falls back to item lookup."""
        try:
            return getattr(obj, attribute)
        except AttributeError:
            pass
        try:
            return obj[attribute]
        except (TypeError, LookupError, AttributeError):
            return self.undefined(obj=obj, name=attribute)

    def getitem(self, obj: Any, argument: Any) -> Any:
        """Item lookup for `obj[argument]`; falls back to attribute lookup for strings."""
        try:
            return obj[argument]
        except (AttributeError, TypeError, LookupError):
            if isinstance(argument, str):
                try:
                    return getattr(obj, argument)
                except AttributeError:
                    pass
            return self.undefined(obj=obj, name=argument)

    def _dispatch(
        self,
        kind: str,
        registry: Mapping[str, Callable],
        name: str,
        value: Any,
        args: Optional[Sequence[Any]],
        kwargs: Optional[Mapping[str, Any]],
        context: Any,
        eval_ctx: Optional[EvalContext],
    ) -> Any:
        func = registry.get(name)
        if func is None:
            raise TemplateRuntimeError(f"No {kind} named {name!r}.")

        call_args = [value, *(args or ())]
        pass_arg = PassArg.from_obj(func)
        if pass_arg is PassArg.CONTEXT:
            if context is None:
                raise TemplateRuntimeError(f"Attempted to invoke a context {kind} without context.")
            call_args.insert(0, context)
        elif pass_arg is PassArg.EVAL_CONTEXT:
            if eval_ctx is None:
                eval_ctx = context.eval_ctx if context is not None else EvalContext(self)
            call_args.insert(0, eval_ctx)
        elif pass_arg is PassArg.ENVIRONMENT:
            call_args.insert(0, self)
        return func(*call_args, **(kwargs or {}))

    def call_filter(
        self,
        name: str,
        value: Any,
        args: Optional[Sequence[Any]] = None,
        kwargs: Optional[Mapping[str, Any]] = None,
        context: Any = None,
        eval_ctx: Optional[EvalContext] = None,
    ) -> Any:
        """
        Invoke a filter by name.

        Raises:
            TemplateRuntimeError: If no such filter is registered
        """
        return self._dispatch("filter", self.filters, name, value, args, kwargs, context, eval_ctx)

    def call_test(
        self,
        name: str,
        value: Any,
        args: Optional[Sequence[Any]] = None,
        kwargs: Optional[Mapping[str, Any]] = None,
        context: Any = None,
        eval_ctx: Optional[EvalContext] = None,
    ) -> Any:
        """
        Invoke a test by name.

        Raises:
            TemplateRuntimeError: If no such test is registered
        """
        return self._dispatch("test", self.tests, name, value, args, kwargs, context, eval_ctx)


__all__ = ["Environment", "import_string"]
