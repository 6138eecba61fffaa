from __future__ import annotations

import functools
import multiprocessing
import sys
from multiprocessing.connection import Connection
from pathlib import Path
from typing import Any

from clickpath.channel import CommandChannel, FileChannel, FileCommandServer, PipeChannel, serve_connection
from clickpath.debug_log import log
from clickpath.user_config import ResolvedChannelConfig

from .dispatch import dispatch_command


def _build_handler():
    # pynput talks to the display server at import time; keep it out of the orchestrator process.
    from .os_actions import PynputActions

    return functools.partial(dispatch_command, actions=PynputActions())


def run_executor_process(
    conn: Connection | None = None,
    stop_event: Any = None,
    *,
    request_path: str | None = None,
    response_path: str | None = None,
    poll_interval_s: float = 0.1,
) -> None:
    """
    Entry point for the executor: serve commands over conn, or over the file artifacts.
    """
    log("=== Executor started ===")
    log(f"transport={'pipe' if conn is not None else 'file'} sys.platform={sys.platform}")
    try:
        handler = _build_handler()
    except Exception as e:
        log(f"FAILED to initialise OS actions: {e}", exc_info=True)
        if conn is not None:
            conn.close()
        raise

    try:
        if conn is not None:
            serve_connection(conn, handler, stop_event, poll_interval_s=poll_interval_s)
        else:
            if not request_path or not response_path:
                raise ValueError("file transport requires request_path and response_path")
            server = FileCommandServer(Path(request_path), Path(response_path), handler, poll_interval_s=poll_interval_s)
            server.serve_forever(stop_event)
        log("Executor finished.")
    except Exception as e:
        log(f"FATAL executor error: {e}", exc_info=True)
        raise


class ExecutorHandle:
    """The orchestrator's view of the executor: a channel plus, for pipes, the child process."""

    def __init__(
        self,
        channel: CommandChannel,
        process: multiprocessing.Process | None = None,
        stop_event: Any = None,
    ) -> None:
        self.channel = channel
        self.process = process
        self.stop_event = stop_event

    @classmethod
    def start(cls, cfg: ResolvedChannelConfig) -> ExecutorHandle:
        if cfg.transport == "file":
            cfg.request_path.parent.mkdir(parents=True, exist_ok=True)
            channel = FileChannel(
                cfg.request_path,
                cfg.response_path,
                timeout_s=cfg.timeout_s,
                poll_interval_s=cfg.poll_interval_s,
            )
            return cls(channel)

        parent_conn, child_conn = multiprocessing.Pipe()
        stop_event = multiprocessing.Event()
        process = multiprocessing.Process(
            target=run_executor_process,
            args=(child_conn, stop_event),
            kwargs={"poll_interval_s": cfg.poll_interval_s},
            daemon=True,
        )
        process.start()
        child_conn.close()
        channel = PipeChannel(parent_conn, timeout_s=cfg.timeout_s, poll_interval_s=cfg.poll_interval_s)
        return cls(channel, process, stop_event)

    def ping(self) -> None:
        self.channel.send("ping")

    def close(self) -> None:
        if self.stop_event is not None:
            self.stop_event.set()
        self.channel.close()
        if self.process is not None:
            self.process.join(timeout=5)
            if self.process.is_alive():
                self.process.terminate()
            self.process = None

    def __enter__(self) -> ExecutorHandle:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
