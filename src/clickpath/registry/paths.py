from __future__ import annotations

from clickpath.errors import StructuralConflict

ContextPath = tuple[str, ...]

ROOT: ContextPath = ()
ROOT_KEY = "_root"

_RESERVED_NAMES = {"", ".", "..", ROOT_KEY}


def parse_path(path: str, current: ContextPath = ROOT) -> ContextPath:
    """
    Resolve an absolute ("/a/b"), relative ("b", "../c") or "/" path against current.

    ".." at the root stays at the root. Existence is not checked here.
    """
    s = (path or "").strip()
    if s.startswith("/"):
        parts: list[str] = []
        s = s[1:]
    else:
        parts = list(current)
    for seg in s.split("/"):
        if not seg or seg == ".":
            continue
        if seg == "..":
            if parts:
                parts.pop()
            continue
        parts.append(seg)
    return tuple(parts)


def format_path(path: ContextPath) -> str:
    return "/" + "/".join(path)


def is_within(path: ContextPath, ancestor: ContextPath) -> bool:
    """True if path equals ancestor or lies beneath it."""
    return path[: len(ancestor)] == ancestor


def validate_name(name: str) -> str:
    if not isinstance(name, str) or name.strip() != name or name in _RESERVED_NAMES or "/" in name:
        raise StructuralConflict(f"Invalid name: {name!r}")
    return name
