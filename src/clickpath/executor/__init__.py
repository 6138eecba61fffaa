"""
Executor package.

The privileged side of the command channel: it performs exactly one OS-level
action per command. `os_actions` imports pynput and is only loaded inside the
executor process.
"""

from .dispatch import OsActions, dispatch_command
from .process import ExecutorHandle, run_executor_process

__all__ = [
    "OsActions",
    "dispatch_command",
    "ExecutorHandle",
    "run_executor_process",
]
