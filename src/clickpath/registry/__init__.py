"""
Context registry package.

- path parsing for the "/"-separated context namespace
- the persisted context tree (clicks + subcontexts)
- scope-chain click resolution
"""

from .paths import ROOT, ContextPath, format_path, is_within, parse_path, validate_name
from .scope import ResolvedClick, resolve_click
from .store import ClickRecord, ContextNode, ContextStore

__all__ = [
    "ROOT",
    "ContextPath",
    "format_path",
    "is_within",
    "parse_path",
    "validate_name",
    "ResolvedClick",
    "resolve_click",
    "ClickRecord",
    "ContextNode",
    "ContextStore",
]
