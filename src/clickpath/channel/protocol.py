from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable

from clickpath.errors import ChannelBusy, CommandTimeout, ExecutorError

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], dict[str, Any]]

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_POLL_INTERVAL_S = 0.1

_ENVELOPE_KEYS = ("success", "id")


def build_response(command: Any, handler: Handler) -> dict[str, Any]:
    """
    Run one command through handler and shape exactly one response for it.

    The response echoes the command's request id so the orchestrator can tell
    a current reply from a late one.
    """
    request_id = command.get("id") if isinstance(command, dict) else None
    try:
        if not isinstance(command, dict) or not isinstance(command.get("action"), str):
            raise ValueError(f"Invalid command: {command!r}")
        result = dict(handler(command))
    except Exception as e:
        logger.exception("Command failed: %r", command)
        result = {"success": False, "error": str(e) or e.__class__.__name__}
    result.setdefault("success", True)
    result["id"] = request_id
    return result


class CommandChannel:
    """
    Request/response link to the executor process.

    At most one request is outstanding at a time. Subclasses implement
    `_exchange`, returning the response matching `payload["id"]` or None once
    `timeout_s` has elapsed.
    """

    def __init__(self, *, timeout_s: float = DEFAULT_TIMEOUT_S, poll_interval_s: float = DEFAULT_POLL_INTERVAL_S) -> None:
        self.timeout_s = float(timeout_s)
        self.poll_interval_s = float(poll_interval_s)
        self._in_flight = threading.Lock()

    def send(self, action: str, **params: Any) -> dict[str, Any]:
        if not self._in_flight.acquire(blocking=False):
            raise ChannelBusy(f"Cannot send '{action}': another command is still outstanding")
        try:
            payload = {"action": action, **params, "id": uuid.uuid4().hex}
            response = self._exchange(payload)
        finally:
            self._in_flight.release()

        if response is None:
            raise CommandTimeout(action, self.timeout_s)
        if not response.get("success"):
            raise ExecutorError(action, str(response.get("error") or "executor reported failure"))
        return {k: v for k, v in response.items() if k not in _ENVELOPE_KEYS}

    def _exchange(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> CommandChannel:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
