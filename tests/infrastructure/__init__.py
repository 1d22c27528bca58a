"""
Shared test infrastructure.

Modules:
- file_utils: creating template files and directories
- cli_utils: running the command line interface in a subprocess
"""

from .cli_utils import run_cli
from .file_utils import write, write_templates

__all__ = [
    "write",
    "write_templates",
    "run_cli",
]
