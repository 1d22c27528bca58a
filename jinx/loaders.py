"""
Template loaders.

A loader maps template names to source text. `get_source()` returns
`(source, filename, uptodate)` or, for asynchronous loaders, an awaitable
of that tuple; `uptodate` is a callable telling whether the source is
still current (or None when it never changes).
"""

from __future__ import annotations

import inspect
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import TemplateNotFound
from .runtime.steps import Step, drive_sync, resolve

if TYPE_CHECKING:
    from .environment import Environment
    from .template import Template

logger = logging.getLogger(__name__)

SourceTuple = Tuple[str, Optional[str], Optional[Callable[[], bool]]]


def split_template_path(template: str) -> List[str]:
    """
    Split a template name into path segments.

    Raises:
        TemplateNotFound: If the name tries to escape the search path
    """
    pieces = []
    for piece in template.split("/"):
        if os.sep in piece or (os.altsep and os.altsep in piece) or piece == os.path.pardir:
            raise TemplateNotFound(template)
        if piece and piece != ".":
            pieces.append(piece)
    return pieces


class BaseLoader:
    """
    Base class for loaders.

    Subclasses implement `get_source()`; loaders without source access
    (such as `ChoiceLoader`) override `load_step()` instead.
    """

    has_source_access = True

    def get_source(self, environment: "Environment", template: str) -> Union[SourceTuple, Any]:
        if not self.has_source_access:
            raise RuntimeError(f"{type(self).__name__} cannot provide access to the source")
        raise TemplateNotFound(template)

    def list_templates(self) -> List[str]:
        raise TypeError("this loader cannot iterate over all templates")

    def load_step(
        self,
        environment: "Environment",
        name: str,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Step:
        """Fetch the source (awaiting it if needed), compile it and wrap it in a template."""
        source, filename, uptodate = yield from resolve(self.get_source(environment, name))
        logger.debug(f"Loaded template {name!r} from {filename or type(self).__name__}")
        unit = environment.compile(source, name, filename)
        return environment.template_class(environment, unit, environment.make_globals(globals), uptodate)

    def load(
        self,
        environment: "Environment",
        name: str,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> "Template":
        return drive_sync(self.load_step(environment, name, globals))


class DictLoader(BaseLoader):
    """Templates from a mapping of names to source strings."""

    def __init__(self, mapping: Mapping[str, str]):
        self.mapping = mapping

    def get_source(self, environment: "Environment", template: str) -> SourceTuple:
        if template not in self.mapping:
            raise TemplateNotFound(template)
        source = self.mapping[template]
        return source, None, lambda: source == self.mapping.get(template)

    def list_templates(self) -> List[str]:
        return sorted(self.mapping)


class FileSystemLoader(BaseLoader):
    """
    Templates from directories on disk.

    Args:
        searchpath: Directory or list of directories, searched in order
        encoding: Encoding of the template files
        followlinks: Follow symbolic links when listing templates
    """

    def __init__(
        self,
        searchpath: Union[str, os.PathLike, Sequence[Union[str, os.PathLike]]],
        encoding: str = "utf-8",
        followlinks: bool = False,
    ):
        if isinstance(searchpath, (str, os.PathLike)):
            searchpath = [searchpath]
        self.searchpath = [Path(p) for p in searchpath]
        self.encoding = encoding
        self.followlinks = followlinks

    def get_source(self, environment: "Environment", template: str) -> SourceTuple:
        pieces = split_template_path(template)
        for directory in self.searchpath:
            path = directory.joinpath(*pieces)
            if path.is_file():
                break
        else:
            raise TemplateNotFound(template)

        source = path.read_text(encoding=self.encoding)
        mtime = path.stat().st_mtime

        def uptodate() -> bool:
            try:
                return path.stat().st_mtime == mtime
            except OSError:
                return False

        return source, os.path.normpath(path), uptodate

    def list_templates(self) -> List[str]:
        found = set()
        for directory in self.searchpath:
            for dirpath, _, filenames in os.walk(directory, followlinks=self.followlinks):
                for filename in filenames:
                    relative = Path(dirpath, filename).relative_to(directory)
                    found.add(relative.as_posix())
        return sorted(found)


class FunctionLoader(BaseLoader):
    """
    Templates from a function.

    The function receives the template name and returns the source, a full
    `(source, filename, uptodate)` tuple or None when there is no such
    template.
    """

    def __init__(self, load_func: Callable[[str], Any]):
        self.load_func = load_func

    def get_source(self, environment: "Environment", template: str) -> SourceTuple:
        rv = self.load_func(template)
        if rv is None:
            raise TemplateNotFound(template)
        if isinstance(rv, str):
            return rv, None, None
        return rv


class PrefixLoader(BaseLoader):
    """
    Dispatch on a name prefix: `"app/index.html"` asks the loader mapped to
    `app` for `index.html`.
    """

    def __init__(self, mapping: Mapping[str, BaseLoader], delimiter: str = "/"):
        self.mapping = mapping
        self.delimiter = delimiter

    def get_loader(self, template: str) -> Tuple[BaseLoader, str]:
        try:
            prefix, name = template.split(self.delimiter, 1)
            loader = self.mapping[prefix]
        except (ValueError, KeyError):
            raise TemplateNotFound(template) from None
        return loader, name

    def get_source(self, environment: "Environment", template: str) -> Union[SourceTuple, Any]:
        loader, name = self.get_loader(template)
        try:
            return loader.get_source(environment, name)
        except TemplateNotFound as error:
            raise TemplateNotFound(template) from error

    def load_step(
        self,
        environment: "Environment",
        name: str,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Step:
        loader, local_name = self.get_loader(name)
        try:
            return (yield from loader.load_step(environment, local_name, globals))
        except TemplateNotFound as error:
            raise TemplateNotFound(name) from error

    def list_templates(self) -> List[str]:
        result = []
        for prefix, loader in self.mapping.items():
            for template in loader.list_templates():
                result.append(prefix + self.delimiter + template)
        return result


class ChoiceLoader(BaseLoader):
    """Try a list of loaders in order; the first one that has the template wins."""

    def __init__(self, loaders: Sequence[BaseLoader]):
        self.loaders = list(loaders)

    def get_source(self, environment: "Environment", template: str) -> Union[SourceTuple, Any]:
        for index, loader in enumerate(self.loaders):
            try:
                rv = loader.get_source(environment, template)
            except TemplateNotFound:
                continue
            if inspect.isawaitable(rv):
                return self._get_source_async(environment, template, rv, index + 1)
            return rv
        raise TemplateNotFound(template)

    async def _get_source_async(
        self,
        environment: "Environment",
        template: str,
        pending: Any,
        start: int,
    ) -> SourceTuple:
        try:
            return await pending
        except TemplateNotFound:
            pass
        for loader in self.loaders[start:]:
            try:
                rv = loader.get_source(environment, template)
                if inspect.isawaitable(rv):
                    rv = await rv
                return rv
            except TemplateNotFound:
                continue
        raise TemplateNotFound(template)

    def load_step(
        self,
        environment: "Environment",
        name: str,
        globals: Optional[Mapping[str, Any]] = None,
    ) -> Step:
        for loader in self.loaders:
            try:
                return (yield from loader.load_step(environment, name, globals))
            except TemplateNotFound:
                logger.debug(f"{type(loader).__name__} has no template {name!r}")
        raise TemplateNotFound(name)

    def list_templates(self) -> List[str]:
        found = set()
        for loader in self.loaders:
            found.update(loader.list_templates())
        return sorted(found)


__all__ = [
    "BaseLoader",
    "DictLoader",
    "FileSystemLoader",
    "FunctionLoader",
    "PrefixLoader",
    "ChoiceLoader",
    "split_template_path",
]
