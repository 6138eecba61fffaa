from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import mss
import pyperclip
from pynput import keyboard, mouse

logger = logging.getLogger(__name__)

_K = keyboard.Key

_NAMED_KEYS: dict[str, keyboard.Key] = {
    "cmd": _K.cmd,
    "command": _K.cmd,
    "meta": _K.cmd,
    "ctrl": _K.ctrl,
    "control": _K.ctrl,
    "alt": _K.alt,
    "option": _K.alt,
    "shift": _K.shift,
    "space": _K.space,
    "enter": _K.enter,
    "return": _K.enter,
    "tab": _K.tab,
    "esc": _K.esc,
    "escape": _K.esc,
    "backspace": _K.backspace,
    "delete": _K.delete,
    "up": _K.up,
    "down": _K.down,
    "left": _K.left,
    "right": _K.right,
    "home": _K.home,
    "end": _K.end,
    "pageup": _K.page_up,
    "pagedown": _K.page_down,
}


def _normalize_key_token(t: str) -> str:
    return t.strip().lower().replace(" ", "").replace("-", "").replace("_", "")


def _token_to_key(token: str) -> keyboard.Key | str:
    """
    Map a token like "ctrl", "f5" or "t" to a pynput Key or literal character.
    """
    tok = _normalize_key_token(token)
    if tok in _NAMED_KEYS:
        return _NAMED_KEYS[tok]

    if tok.startswith("f") and tok[1:].isdigit():
        key = getattr(_K, f"f{int(tok[1:])}", None)
        if key is not None:
            return key

    if len(tok) == 1:
        return tok
    raise ValueError(f"Unknown key token: {token!r}")


def parse_key_combo(combo: str) -> list[keyboard.Key | str]:
    tokens = [t for t in str(combo).split("+") if t.strip()]
    if not tokens:
        raise ValueError("key combination must be a non-empty string like 'ctrl+shift+t'")
    return [_token_to_key(t) for t in tokens]


def _shortcut_modifier() -> keyboard.Key:
    return _K.cmd if sys.platform == "darwin" else _K.ctrl


class PynputActions:
    """
    OS input via pynput, clipboard via pyperclip, screen capture via mss.
    """

    def __init__(self, *, copy_settle_s: float = 0.1) -> None:
        self.mouse = mouse.Controller()
        self.keyboard = keyboard.Controller()
        self.copy_settle_s = copy_settle_s

    def _tap(self, seq: list[keyboard.Key | str]) -> None:
        # Press in order, release in reverse.
        pressed: list[keyboard.Key | str] = []
        try:
            for k in seq:
                self.keyboard.press(k)
                pressed.append(k)
            time.sleep(0.02)
        finally:
            for k in reversed(pressed):
                self.keyboard.release(k)

    def click(self, x: int, y: int, *, double: bool = False) -> None:
        self.mouse.position = (int(x), int(y))
        time.sleep(0.03)
        self.mouse.click(mouse.Button.left, 2 if double else 1)

    def type_text(self, text: str) -> None:
        self.keyboard.type(str(text))

    def press_keys(self, combo: str) -> None:
        self._tap(parse_key_combo(combo))

    def copy(self) -> str:
        self._tap([_shortcut_modifier(), "c"])
        time.sleep(self.copy_settle_s)
        return pyperclip.paste() or ""

    def paste(self) -> None:
        self._tap([_shortcut_modifier(), "v"])

    def set_clipboard(self, text: str) -> None:
        pyperclip.copy(str(text))

    def scroll(self, amount: int) -> None:
        # Positive amounts scroll down; pynput's dy is positive upward.
        self.mouse.scroll(0, -int(amount))

    def screenshot(self, filename: str) -> None:
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        with mss.mss() as sct:
            # Monitor 1 is the primary display.
            sct.shot(mon=1, output=str(filename))

    def mouse_position(self) -> tuple[int, int]:
        x, y = self.mouse.position
        return int(x), int(y)

    def show_overlay(self, text: str, duration_ms: int) -> None:
        logger.info("overlay: %s (%dms)", text.replace("\n", " "), duration_ms)

    def hide_overlay(self) -> None:
        logger.info("overlay hidden")
