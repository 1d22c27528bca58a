"""
Error taxonomy for the template engine.

All expected errors that should be displayed to the user as clean
messages (without stack traces) inherit from JinxUserError. Template
errors additionally carry their position and the path of the template
they were raised in, and accumulate a path prefix every time they cross
a template boundary (include, import, extends, render call).

Programming errors and bugs should NOT inherit from JinxUserError;
they propagate with full tracebacks.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union


class JinxUserError(Exception):
    """
    Base class for all user-facing errors.

    These errors indicate problems that the template author can fix:
    syntax errors, missing templates, undefined values, etc.
    """
    pass


class TemplateError(JinxUserError):
    """Base class for all template errors."""

    def __init__(
        self,
        message: Optional[str] = None,
        lineno: Optional[int] = None,
        colno: Optional[int] = None,
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ):
        super().__init__(message)
        self.message: str = message or ""
        self.lineno = lineno
        self.colno = colno
        self.name = name
        self.filename = filename
        self.first_update = True

    @property
    def template_path(self) -> Optional[str]:
        return self.filename or self.name

    def locate(
        self,
        lineno: Optional[int],
        colno: Optional[int] = None,
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> "TemplateError":
        """
        Attach a position to an error that was raised without one.

        Positions already present are never overwritten, so the innermost
        statement that saw the error wins.
        """
        if self.lineno is None and lineno is not None:
            self.lineno = lineno
            self.colno = colno
        if self.name is None:
            self.name = name
        if self.filename is None:
            self.filename = filename
        return self

    def update(
        self,
        path: Optional[str],
        lineno: Optional[int] = None,
        colno: Optional[int] = None,
    ) -> "TemplateError":
        """
        Prefix the message with the template path being exited.

        Only the first update carries the line/column, later ones add the
        path of each enclosing template. A position given here is used only
        when the error has none yet.
        """
        self.locate(lineno, colno)
        prefix = f"({path or 'unknown path'})"
        if self.first_update:
            if self.lineno and self.colno:
                prefix += f" [Line {self.lineno}, Column {self.colno}]"
            elif self.lineno:
                prefix += f" [Line {self.lineno}]"
        prefix += "\n "
        if self.first_update:
            prefix += " "
        self.message = prefix + self.message
        self.args = (self.message,)
        self.first_update = False
        return self

    def __str__(self) -> str:
        return self.message


class TemplateSyntaxError(TemplateError):
    """Raised by the lexer or parser on malformed template source."""

    def __init__(
        self,
        message: str,
        lineno: Optional[int] = None,
        name: Optional[str] = None,
        filename: Optional[str] = None,
        colno: Optional[int] = None,
    ):
        super().__init__(message, lineno=lineno, colno=colno, name=name, filename=filename)
        self.source: Optional[str] = None

    def __str__(self) -> str:
        if not self.first_update:
            return self.message
        location = f"line {self.lineno}" if self.lineno is not None else "unknown line"
        if self.colno is not None:
            location += f", column {self.colno}"
        if self.template_path:
            location = f"{self.template_path!r}, {location}"
        return f"{self.message} ({location})"


class TemplateAssertionError(TemplateSyntaxError):
    """Syntactically valid template that can never work (e.g. assigning to `loop`)."""
    pass


class TemplateNotFound(TemplateError, LookupError):
    """Raised when a loader cannot find a template."""

    def __init__(self, name: Optional[Union[str, object]], message: Optional[str] = None):
        if message is None:
            message = str(name)
        super().__init__(message, name=name if isinstance(name, str) else None)
        self.templates: List[object] = [name]


class TemplatesNotFound(TemplateNotFound):
    """
    Raised when none of a list of candidate templates could be loaded.

    Attributes:
        templates: Every candidate that was tried, in order
    """

    def __init__(self, names: Sequence[object] = (), message: Optional[str] = None):
        if message is None:
            shown = ", ".join(str(n) for n in names)
            message = f"none of the templates given were found: {shown}"
        super().__init__(names[-1] if names else None, message)
        self.templates = list(names)


class UndefinedError(TemplateError):
    """An undefined value was used where a concrete value is required."""
    pass


class TemplateRuntimeError(TemplateError):
    """Semantic violation detected while rendering."""
    pass


class FilterArgumentError(TemplateRuntimeError):
    """A filter received an argument it cannot handle."""
    pass


class CompileError(TemplateError):
    """The AST references a node kind no compiler rule is registered for."""
    pass


__all__ = [
    "JinxUserError",
    "TemplateError",
    "TemplateSyntaxError",
    "TemplateAssertionError",
    "TemplateNotFound",
    "TemplatesNotFound",
    "UndefinedError",
    "TemplateRuntimeError",
    "FilterArgumentError",
    "CompileError",
]
