"""
Extension system: base class, registry and built-in extensions.
"""

from __future__ import annotations

from .base import DEFAULT_PRIORITY, CompilerRule, Extension
from .builtin import BUILTIN_EXTENSIONS, DebugExtension, ExprStmtExtension, LoopControlExtension
from .registry import ExtensionRegistry

__all__ = [
    "CompilerRule",
    "Extension",
    "ExtensionRegistry",
    "ExprStmtExtension",
    "LoopControlExtension",
    "DebugExtension",
    "DEFAULT_PRIORITY",
    "BUILTIN_EXTENSIONS",
]
