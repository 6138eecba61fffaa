from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any

from clickpath.jsonio import write_json_atomic

from .protocol import DEFAULT_POLL_INTERVAL_S, CommandChannel, Handler, build_response

logger = logging.getLogger(__name__)


def _unlink(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class FileChannel(CommandChannel):
    """
    Orchestrator side of the file-mediated protocol.

    The request is written to `request_path` and the reply is read from
    `response_path`; both are replaced atomically by their writers, and the
    reply is deleted here once consumed.
    """

    def __init__(self, request_path: str | Path, response_path: str | Path, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.request_path = Path(request_path)
        self.response_path = Path(response_path)

    def _exchange(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        request_id = payload["id"]
        # A reply left over from an abandoned request must not be mistaken for ours.
        _unlink(self.response_path)
        write_json_atomic(self.request_path, payload, indent=None)

        deadline = time.monotonic() + self.timeout_s
        # A reply first seen after the deadline counts as a timeout.
        while time.monotonic() < deadline:
            response = self._take_response(request_id)
            if response is not None:
                return response
            time.sleep(max(0.0, min(self.poll_interval_s, deadline - time.monotonic())))

        # Withdraw the request if the executor never claimed it.
        _unlink(self.request_path)
        logger.warning("Timed out waiting for response to %s (%s)", payload.get("action"), request_id)
        return None

    @property
    def taken_path(self) -> Path:
        return self.response_path.with_name(self.response_path.name + ".taken")

    def _take_response(self, request_id: str) -> dict[str, Any] | None:
        # Claim by rename so a reply written after this point is left in place.
        taken = self.taken_path
        try:
            os.replace(str(self.response_path), str(taken))
        except FileNotFoundError:
            return None
        try:
            text = taken.read_text(encoding="utf-8")
        finally:
            _unlink(taken)
        try:
            data = json.loads(text)
        except ValueError:
            logger.warning("Discarding unparsable response: %r", text[:200])
            return None
        if not isinstance(data, dict) or data.get("id") != request_id:
            logger.warning("Discarding stale response: %r", data)
            return None
        return data

    def close(self) -> None:
        _unlink(self.request_path)
        _unlink(self.response_path)


class FileCommandServer:
    """
    Executor side of the file-mediated protocol.

    Each cycle: claim the request (atomic rename), perform exactly one action,
    write exactly one response (atomic replace), then delete the claimed request.
    """

    def __init__(
        self,
        request_path: str | Path,
        response_path: str | Path,
        handler: Handler,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        self.request_path = Path(request_path)
        self.response_path = Path(response_path)
        self.handler = handler
        self.poll_interval_s = float(poll_interval_s)

    @property
    def claimed_path(self) -> Path:
        return self.request_path.with_name(self.request_path.name + ".claimed")

    def serve_once(self) -> bool:
        """Handle one pending request. Returns False if there was none."""
        claimed = self.claimed_path
        try:
            os.replace(str(self.request_path), str(claimed))
        except FileNotFoundError:
            return False

        try:
            text = claimed.read_text(encoding="utf-8")
            if not text.strip():
                return False
            try:
                command: Any = json.loads(text)
            except ValueError as e:
                command = None
                response = {"success": False, "error": f"Malformed command: {e}", "id": None}
            else:
                response = build_response(command, self.handler)
            logger.debug("Command %r -> %r", command, response)
            write_json_atomic(self.response_path, response, indent=None)
            return True
        finally:
            _unlink(claimed)

    def serve_forever(self, stop_event: threading.Event | None = None) -> None:
        stop = stop_event or threading.Event()
        logger.info("Watching for commands at %s", self.request_path)
        while not stop.is_set():
            if not self.serve_once():
                stop.wait(self.poll_interval_s)
