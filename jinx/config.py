"""
Environment configuration files.

A YAML file describes an environment (delimiters, whitespace handling,
autoescaping, extensions, search paths, globals):

    block_start_string: "<%"
    block_end_string: "%>"
    trim_blocks: true
    autoescape: [html, xml]
    extensions: [do, loopcontrols]
    search_path: [templates]
    globals:
      site_name: Example

Relative search paths are resolved against the directory of the file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .environment import Environment
from .errors import JinxUserError
from .loaders import FileSystemLoader
from .runtime.undefined import ChainableUndefined, StrictUndefined, Undefined

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")

_UNDEFINED_CLASSES = {
    "default": Undefined,
    "chainable": ChainableUndefined,
    "strict": StrictUndefined,
}


class ConfigError(JinxUserError):
    """Configuration file is missing, malformed or invalid."""
    pass


def select_autoescape(
    enabled_extensions: Iterable[str] = ("html", "htm", "xml"),
    disabled_extensions: Iterable[str] = (),
    default_for_string: bool = True,
    default: bool = False,
) -> Callable[[Optional[str]], bool]:
    """
    Build an autoescape predicate based on the template file extension.

    Args:
        enabled_extensions: Extensions for which autoescaping is on
        disabled_extensions: Extensions for which autoescaping is off
        default_for_string: Result for templates without a name
        default: Result when no extension matches
    """
    enabled = tuple(f".{ext.lstrip('.').lower()}" for ext in enabled_extensions)
    disabled = tuple(f".{ext.lstrip('.').lower()}" for ext in disabled_extensions)

    def autoescape(template_name: Optional[str]) -> bool:
        if template_name is None:
            return default_for_string
        template_name = template_name.lower()
        if template_name.endswith(enabled):
            return True
        if template_name.endswith(disabled):
            return False
        return default

    return autoescape


class EnvironmentConfig(BaseModel):
    """Validated environment settings."""

    model_config = ConfigDict(extra="forbid")

    block_start_string: str = "{%"
    block_end_string: str = "%}"
    variable_start_string: str = "{{"
    variable_end_string: str = "}}"
    comment_start_string: str = "{#"
    comment_end_string: str = "#}"
    line_statement_prefix: Optional[str] = None
    line_comment_prefix: Optional[str] = None
    trim_blocks: bool = False
    lstrip_blocks: bool = False
    newline_sequence: Literal["\n", "\r\n", "\r"] = "\n"
    keep_trailing_newline: bool = False
    # True/False, or the file extensions to escape.
    autoescape: Union[bool, List[str]] = False
    enable_async: bool = False
    extensions: List[str] = []
    search_path: List[str] = []
    encoding: str = "utf-8"
    undefined: Literal["default", "chainable", "strict"] = "default"
    cache_size: int = 400
    auto_reload: bool = True
    globals: Dict[str, Any] = {}

    def autoescape_policy(self) -> Union[bool, Callable[[Optional[str]], bool]]:
        if isinstance(self.autoescape, bool):
            return self.autoescape
        return select_autoescape(self.autoescape, default_for_string=False)

    def create_environment(self, **overrides: Any) -> Environment:
        """
        Build an environment from these settings.

        Keyword arguments are passed to `Environment` and take precedence.
        """
        kwargs: Dict[str, Any] = {
            "block_start_string": self.block_start_string,
            "block_end_string": self.block_end_string,
            "variable_start_string": self.variable_start_string,
            "variable_end_string": self.variable_end_string,
            "comment_start_string": self.comment_start_string,
            "comment_end_string": self.comment_end_string,
            "line_statement_prefix": self.line_statement_prefix,
            "line_comment_prefix": self.line_comment_prefix,
            "trim_blocks": self.trim_blocks,
            "lstrip_blocks": self.lstrip_blocks,
            "newline_sequence": self.newline_sequence,
            "keep_trailing_newline": self.keep_trailing_newline,
            "autoescape": self.autoescape_policy(),
            "enable_async": self.enable_async,
            "extensions": list(self.extensions),
            "undefined": _UNDEFINED_CLASSES[self.undefined],
            "cache_size": self.cache_size,
            "auto_reload": self.auto_reload,
            "globals": dict(self.globals),
        }
        if self.search_path:
            kwargs["loader"] = FileSystemLoader(self.search_path, encoding=self.encoding)
        kwargs.update(overrides)
        return Environment(**kwargs)


def _read_yaml_map(path: Path) -> Dict[str, Any]:
    """Read a YAML file that must contain a mapping (an empty file counts as one)."""
    try:
        raw = _yaml.load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"YAML must be a mapping: {path}")
    return raw


def load_config(path: Union[str, Path]) -> EnvironmentConfig:
    """
    Load and validate an environment configuration file.

    Raises:
        ConfigError: If the file cannot be read, is not a YAML mapping or
            does not validate
    """
    path = Path(path)
    raw = _read_yaml_map(path)

    search_path = raw.get("search_path")
    if isinstance(search_path, str):
        search_path = [search_path]
    if isinstance(search_path, list):
        raw["search_path"] = [str((path.parent / str(p)).resolve()) for p in search_path]

    try:
        config = EnvironmentConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e

    logger.debug(f"Loaded configuration from {path}")
    return config


def load_vars(path: Union[str, Path]) -> Dict[str, Any]:
    """Load render variables from a YAML mapping."""
    return _read_yaml_map(Path(path))


__all__ = [
    "EnvironmentConfig",
    "ConfigError",
    "load_config",
    "load_vars",
    "select_autoescape",
]
