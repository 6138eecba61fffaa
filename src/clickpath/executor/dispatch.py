from __future__ import annotations

from typing import Any, Protocol


class OsActions(Protocol):
    """The OS-level side effects an executor can perform, one per command."""

    def click(self, x: int, y: int, *, double: bool = False) -> None: ...

    def type_text(self, text: str) -> None: ...

    def press_keys(self, combo: str) -> None: ...

    def copy(self) -> str: ...

    def paste(self) -> None: ...

    def set_clipboard(self, text: str) -> None: ...

    def scroll(self, amount: int) -> None: ...

    def screenshot(self, filename: str) -> None: ...

    def mouse_position(self) -> tuple[int, int]: ...

    def show_overlay(self, text: str, duration_ms: int) -> None: ...

    def hide_overlay(self) -> None: ...


def _require(command: dict[str, Any], key: str) -> Any:
    value = command.get(key)
    if value is None:
        raise ValueError(f"action={command.get('action')} requires {key}: {command}")
    return value


def dispatch_command(command: dict[str, Any], actions: OsActions) -> dict[str, Any]:
    """
    Perform the single side effect a command asks for and return its result fields.

    Exceptions propagate; the serving loop turns them into {success: false, error}.
    """
    a = command.get("action")

    if a == "click":
        actions.click(int(_require(command, "x")), int(_require(command, "y")), double=bool(command.get("doubleClick")))
        return {"success": True}

    if a == "type":
        actions.type_text(str(_require(command, "text")))
        return {"success": True}

    if a == "key":
        actions.press_keys(str(_require(command, "keys")))
        return {"success": True}

    if a == "copy":
        return {"success": True, "clipboard": actions.copy()}

    if a == "paste":
        actions.paste()
        return {"success": True}

    if a == "setClipboard":
        actions.set_clipboard(str(_require(command, "text")))
        return {"success": True}

    if a == "scroll":
        actions.scroll(int(_require(command, "amount")))
        return {"success": True}

    if a == "screenshot":
        actions.screenshot(str(_require(command, "filename")))
        return {"success": True}

    if a == "getMousePosition":
        x, y = actions.mouse_position()
        return {"success": True, "x": int(x), "y": int(y)}

    if a == "showOverlay":
        actions.show_overlay(str(command.get("text") or ""), int(command.get("duration") or 0))
        return {"success": True}

    if a == "hideOverlay":
        actions.hide_overlay()
        return {"success": True}

    if a == "ping":
        return {"success": True}

    return {"success": False, "error": f"Unknown action: {a}"}
