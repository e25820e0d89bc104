"""
Execution backends.
"""

from verishell.sandbox._base import Shell
from verishell.sandbox.isolation import IsolationExecutor
from verishell.sandbox.local import LocalShell, run_subprocess

__all__ = [
    "Shell",
    "LocalShell",
    "IsolationExecutor",
    "run_subprocess",
]
