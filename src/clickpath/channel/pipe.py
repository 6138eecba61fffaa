from __future__ import annotations

import logging
import time
from multiprocessing.connection import Connection
from typing import Any

from clickpath.errors import ExecutorError

from .protocol import DEFAULT_POLL_INTERVAL_S, CommandChannel, Handler, build_response

logger = logging.getLogger(__name__)


class PipeChannel(CommandChannel):
    """Same request/response contract as FileChannel, over a multiprocessing connection."""

    def __init__(self, conn: Connection, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.conn = conn

    def _exchange(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        request_id = payload["id"]
        action = str(payload.get("action"))
        try:
            self.conn.send(payload)
            deadline = time.monotonic() + self.timeout_s
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not self.conn.poll(remaining):
                    logger.warning("Timed out waiting for response to %s (%s)", action, request_id)
                    return None
                msg = self.conn.recv()
                if isinstance(msg, dict) and msg.get("id") == request_id:
                    return msg
                logger.warning("Discarding stale response: %r", msg)
        except (EOFError, OSError) as e:
            raise ExecutorError(action, f"Executor connection lost: {e}") from e

    def close(self) -> None:
        try:
            self.conn.close()
        except OSError:
            pass


def serve_connection(conn: Connection, handler: Handler, stop_event: Any = None, *, poll_interval_s: float = DEFAULT_POLL_INTERVAL_S) -> None:
    """Executor loop for the pipe transport: one response per received command."""
    while stop_event is None or not stop_event.is_set():
        try:
            if not conn.poll(poll_interval_s):
                continue
            command = conn.recv()
        except (EOFError, OSError):
            logger.info("Orchestrator connection closed")
            return
        conn.send(build_response(command, handler))
