"""
Shared pytest fixtures for clickpath tests.

Provides fixtures for:
- a persisted context tree with a small chrome/firefox layout
- a scripted in-memory command channel and a recording OS-actions double
- flow files on disk
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from clickpath.channel import CommandChannel
from clickpath.flows import FlowCatalog
from clickpath.registry import ClickRecord, ContextStore
from clickpath.session import Session

Reply = Union[Dict[str, Any], Callable[[Dict[str, Any]], Optional[Dict[str, Any]]], None]


class ScriptedChannel(CommandChannel):
    """Channel double: records every command and answers from a per-action script.

    A reply of None simulates a timeout.
    """

    def __init__(self, replies: Optional[Dict[str, Reply]] = None):
        super().__init__(timeout_s=0.05, poll_interval_s=0.01)
        self.sent: List[Dict[str, Any]] = []
        self.replies: Dict[str, Reply] = dict(replies or {})

    def _exchange(self, payload):
        self.sent.append(dict(payload))
        reply = self.replies.get(payload["action"], {"success": True})
        if callable(reply):
            reply = reply(payload)
        if reply is None:
            return None
        out = dict(reply)
        out.setdefault("success", True)
        out["id"] = payload["id"]
        return out

    def actions(self, *, screenshots: bool = False) -> List[str]:
        return [c["action"] for c in self.sent if screenshots or c["action"] != "screenshot"]

    def commands(self, action: str) -> List[Dict[str, Any]]:
        return [c for c in self.sent if c["action"] == action]


class RecordingActions:
    """OsActions double that records calls instead of touching the desktop."""

    def __init__(self, clipboard="", position=(0, 0)):
        self.calls = []
        self.clipboard = clipboard
        self.position = position

    def click(self, x, y, *, double=False):
        self.calls.append(("click", x, y, double))

    def type_text(self, text):
        self.calls.append(("type", text))

    def press_keys(self, combo):
        self.calls.append(("key", combo))

    def copy(self):
        self.calls.append(("copy",))
        return self.clipboard

    def paste(self):
        self.calls.append(("paste",))

    def set_clipboard(self, text):
        self.calls.append(("setClipboard", text))
        self.clipboard = text

    def scroll(self, amount):
        self.calls.append(("scroll", amount))

    def screenshot(self, filename):
        self.calls.append(("screenshot", filename))

    def mouse_position(self):
        self.calls.append(("getMousePosition",))
        return self.position

    def show_overlay(self, text, duration_ms):
        self.calls.append(("showOverlay", text, duration_ms))

    def hide_overlay(self):
        self.calls.append(("hideOverlay",))


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "clicks.json"


@pytest.fixture
def store(store_path: Path) -> ContextStore:
    """
    /                 clicks: start
    /chrome           clicks: search, address
    /chrome/tabs      clicks: new-tab (-> /chrome/devtools)
    /chrome/devtools  clicks: console
    /chrome/devtools/elements  clicks: inspect
    /firefox          clicks: search, bookmarks
    """
    s = ContextStore(store_path)
    s.put_click((), "start", ClickRecord(x=1, y=1))
    s.create((), "chrome")
    s.create(("chrome",), "tabs")
    s.create(("chrome",), "devtools")
    s.create(("chrome", "devtools"), "elements")
    s.create((), "firefox")
    s.put_click(("chrome",), "search", ClickRecord(x=100, y=50))
    s.put_click(("chrome",), "address", ClickRecord(x=300, y=40))
    s.put_click(("chrome", "tabs"), "new-tab", ClickRecord(x=20, y=10, target_context="/chrome/devtools"))
    s.put_click(("chrome", "devtools"), "console", ClickRecord(x=700, y=600))
    s.put_click(("chrome", "devtools", "elements"), "inspect", ClickRecord(x=710, y=610))
    s.put_click(("firefox",), "search", ClickRecord(x=900, y=50))
    s.put_click(("firefox",), "bookmarks", ClickRecord(x=950, y=60))
    return s


@pytest.fixture
def session(store: ContextStore) -> Session:
    return Session(store)


@pytest.fixture
def channel() -> ScriptedChannel:
    return ScriptedChannel()


@pytest.fixture
def flows_dir(tmp_path: Path) -> Path:
    d = tmp_path / "flows"
    d.mkdir()
    return d


@pytest.fixture
def checkpoints_dir(tmp_path: Path) -> Path:
    d = tmp_path / "checkpoints"
    d.mkdir()
    return d


@pytest.fixture
def catalog(flows_dir: Path, checkpoints_dir: Path) -> FlowCatalog:
    return FlowCatalog(flows_dir, checkpoints_dir)


@pytest.fixture
def logs_dir(tmp_path: Path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def write_flow(flows_dir: Path) -> Callable[..., Path]:
    def _write(name: str, steps: List[Dict[str, Any]], **extra: Any) -> Path:
        path = flows_dir / f"{name}.json"
        body = {"name": name, "description": extra.pop("description", ""), "steps": steps, **extra}
        path.write_text(json.dumps(body, indent=2), encoding="utf-8")
        return path

    return _write
