"""
Utilities for working with the CLI in tests.
"""

import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def run_cli(*args: str, stdin: Optional[str] = None, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    """
    Runs jinx with the specified arguments in a separate process.

    Args:
        *args: Command line arguments for jinx
        stdin: Text fed to standard input
        cwd: Working directory for command execution

    Returns:
        CompletedProcess with execution results
    """
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(PROJECT_ROOT), env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, "-m", "jinx", *args],
        cwd=cwd, env=env, input=stdin or "", capture_output=True, text=True, encoding="utf-8"
    )


__all__ = [
    "run_cli",
]
