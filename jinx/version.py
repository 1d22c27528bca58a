from __future__ import annotations

from importlib import metadata


def tool_version() -> str:
    """Version of the installed distribution, or 0.0.0 when running from a checkout."""
    try:
        return metadata.version("jinx")
    except metadata.PackageNotFoundError:
        return "0.0.0"

__all__ = ["tool_version"]
