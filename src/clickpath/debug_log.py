"""Debug log for the executor process.

The executor runs detached from the operator's terminal, so it appends to
executor.log in the data directory instead.

Usage:
    from clickpath.debug_log import log

    log("Something happened")
    log("Error occurred", exc_info=True)  # Includes traceback
"""
import os
import tempfile
import traceback
from datetime import datetime
from pathlib import Path

from clickpath.app_data import get_executor_log_path


def _format(msg: str) -> str:
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    return f"[{ts}] [PID {os.getpid()}] {msg}\n"


def log(msg: str, *, exc_info: bool = False) -> None:
    """Append a message to executor.log.

    Args:
        msg: Message to log
        exc_info: If True, append current exception traceback
    """
    line = _format(msg)
    if exc_info:
        line += traceback.format_exc()
    try:
        log_path = get_executor_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(line)
    except OSError:
        # Fallback to the temp dir if the data dir is not writable
        with open(Path(tempfile.gettempdir()) / "clickpath_executor.log", "a", encoding="utf-8") as f:
            f.write(line)
