"""
Central extension registry.

Keeps the extensions of an environment in priority order and exposes the
merged view each pipeline stage needs: preprocessing chain, token stream
filters, tag parsers and compiler rules.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Type

from ..nodes import Node
from ..tokens import TokenStream
from .base import CompilerRule, Extension, ExtensionList

logger = logging.getLogger(__name__)


class ExtensionRegistry:
    """
    Registry of the extensions bound to one environment.

    Extensions are ordered ascending by priority: the lowest priority sees
    the source and the token stream first and wins tag conflicts.
    """

    def __init__(self):
        self.extensions: Dict[str, Extension] = {}
        self.compilers: Dict[Type[Node], CompilerRule] = {}

    def register(self, extension: Extension) -> None:
        """
        Register an extension and its compiler rules.

        A second extension with the same identifier replaces the first one.
        """
        if extension.identifier in self.extensions:
            logger.warning(f"Extension '{extension.identifier}' overwrites existing extension")
        self.extensions[extension.identifier] = extension

        for rule in extension.register_compilers():
            if rule.node_type in self.compilers:
                logger.warning(
                    f"Compiler rule for '{rule.node_type.__name__}' from extension "
                    f"'{extension.identifier}' overwrites existing rule"
                )
            self.compilers[rule.node_type] = rule

        logger.debug(f"Registered extension {extension.identifier} (priority {extension.priority})")

    def __iter__(self):
        return iter(self.sorted())

    def __getitem__(self, identifier: str) -> Extension:
        return self.extensions[identifier]

    def __len__(self) -> int:
        return len(self.extensions)

    def sorted(self) -> ExtensionList:
        """Extensions in ascending priority order."""
        return sorted(self.extensions.values(), key=lambda ext: ext.priority)

    def tag_parsers(self) -> Dict[str, Callable]:
        """Map each claimed tag to the parse hook of the first extension claiming it."""
        parsers: Dict[str, Callable] = {}
        for extension in self.sorted():
            for tag in extension.tags:
                parsers.setdefault(tag, extension.parse)
        return parsers

    def preprocess(self, source: str, name: Optional[str], filename: Optional[str] = None) -> str:
        for extension in self.sorted():
            source = extension.preprocess(source, name, filename)
        return source

    def filter_stream(self, stream: TokenStream) -> TokenStream:
        for extension in self.sorted():
            result = extension.filter_stream(stream)
            if not isinstance(result, TokenStream):
                result = TokenStream(result, stream.name, stream.filename)
            stream = result
        return stream

    def compiler_for(self, node_type: Type[Node]) -> Optional[CompilerRule]:
        """Find the compiler rule for a node type (walking its base classes)."""
        for klass in node_type.__mro__:
            rule = self.compilers.get(klass)
            if rule is not None:
                return rule
        return None


__all__ = ["ExtensionRegistry"]
