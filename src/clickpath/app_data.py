"""Central path resolution for clickpath.

Every other module gets its file locations from here.
"""
from __future__ import annotations

import os
from pathlib import Path


# ---------------------------------------------------------------------------
# APP_DATA_DIR: where the context store, flows and run logs live
# ---------------------------------------------------------------------------


def get_app_data_dir() -> Path:
    """$CLICKPATH_HOME if set, else the current working directory."""
    raw = (os.getenv("CLICKPATH_HOME") or "").strip()
    return Path(raw).expanduser() if raw else Path.cwd()


# ---------------------------------------------------------------------------
# Path getters
# ---------------------------------------------------------------------------


def get_env_path() -> Path:
    return get_app_data_dir() / ".env"


def get_user_config_path() -> Path:
    return get_app_data_dir() / "clickpath.yml"


def get_store_path() -> Path:
    """Path to the persisted context tree."""
    return get_app_data_dir() / "clicks.json"


def get_flows_dir() -> Path:
    return get_app_data_dir() / "flows"


def get_checkpoints_dir() -> Path:
    return get_app_data_dir() / "checkpoints"


def get_logs_dir() -> Path:
    """One subdirectory per flow execution."""
    return get_app_data_dir() / "logs"


def get_channel_dir() -> Path:
    """Request/response artifacts for the file transport."""
    return get_app_data_dir() / "channel"


def get_executor_log_path() -> Path:
    return get_app_data_dir() / "executor.log"


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

DEFAULT_USER_CONFIG = """\
channel:
  transport: "pipe"        # "pipe" spawns the executor; "file" talks to `clickpath executor`
  poll_interval_s: 0.1
  timeout_s: 10.0
  request_file: "input.txt"
  response_file: "output.txt"

runner:
  max_flow_depth: 8
  clipboard_settle_s: 0.3
  screenshots: true

record:
  countdown_s: 5
  fast_countdown_s: 2
"""


def bootstrap_data_dir() -> None:
    """Idempotent: create the data dir layout and seed clickpath.yml.

    Only writes clickpath.yml when it does not already exist.
    """
    root = get_app_data_dir()
    root.mkdir(parents=True, exist_ok=True)
    get_flows_dir().mkdir(exist_ok=True)
    get_checkpoints_dir().mkdir(exist_ok=True)
    get_logs_dir().mkdir(exist_ok=True)
    get_channel_dir().mkdir(exist_ok=True)

    cfg_path = get_user_config_path()
    if not cfg_path.exists():
        cfg_path.write_text(DEFAULT_USER_CONFIG, encoding="utf-8")
