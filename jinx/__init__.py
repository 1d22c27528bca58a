"""
jinx: a text template engine.

    >>> from jinx import Environment
    >>> Environment().from_string("Hello {{ name }}!").render(name="World")
    'Hello World!'
"""

from markupsafe import Markup, escape

from .config import ConfigError, EnvironmentConfig, load_config, select_autoescape
from .environment import Environment
from .errors import (
    FilterArgumentError,
    JinxUserError,
    TemplateAssertionError,
    TemplateError,
    TemplateNotFound,
    TemplateRuntimeError,
    TemplatesNotFound,
    TemplateSyntaxError,
    UndefinedError,
)
from .extensions import Extension
from .loaders import BaseLoader, ChoiceLoader, DictLoader, FileSystemLoader, FunctionLoader, PrefixLoader
from .runtime import (
    ChainableUndefined,
    StrictUndefined,
    Undefined,
    pass_context,
    pass_environment,
    pass_eval_context,
)
from .template import Template, TemplateModule
from .version import tool_version

__version__ = tool_version()

__all__ = [
    "Environment",
    "Template",
    "TemplateModule",
    "BaseLoader",
    "DictLoader",
    "FileSystemLoader",
    "FunctionLoader",
    "PrefixLoader",
    "ChoiceLoader",
    "Extension",
    "Undefined",
    "ChainableUndefined",
    "StrictUndefined",
    "JinxUserError",
    "TemplateError",
    "TemplateSyntaxError",
    "TemplateAssertionError",
    "TemplateNotFound",
    "TemplatesNotFound",
    "TemplateRuntimeError",
    "UndefinedError",
    "FilterArgumentError",
    "ConfigError",
    "EnvironmentConfig",
    "load_config",
    "select_autoescape",
    "pass_context",
    "pass_environment",
    "pass_eval_context",
    "Markup",
    "escape",
]
