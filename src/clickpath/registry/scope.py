from __future__ import annotations

from dataclasses import dataclass

from clickpath.errors import NotFound

from .paths import ContextPath, format_path
from .store import ClickRecord, ContextNode, ContextStore


@dataclass(frozen=True)
class ResolvedClick:
    name: str
    record: ClickRecord
    defined_in: ContextPath


def resolve_click(store: ContextStore, current: ContextPath, name: str) -> ResolvedClick:
    """
    Find the click `name` as seen from `current`.

    Search order (first hit wins):
    1. the current node's own clicks;
    2. walking up toward the root, for each ancestor: its own clicks, then the
       clicks of each of its other direct children, in insertion order, skipping
       the branch just climbed out of.

    Children of the current node and anything nested deeper under a sibling are
    never searched.
    """
    node = store.node_at(current)
    if name in node.clicks:
        return ResolvedClick(name, node.clicks[name], current)

    path = current
    while path:
        came_from = path[-1]
        path = path[:-1]
        ancestor: ContextNode = store.node_at(path)
        if name in ancestor.clicks:
            return ResolvedClick(name, ancestor.clicks[name], path)
        for child_name, child in ancestor.subcontexts.items():
            if child_name == came_from:
                continue
            if name in child.clicks:
                return ResolvedClick(name, child.clicks[name], path + (child_name,))

    raise NotFound(f"Click '{name}' not found from {format_path(current)} or its scope chain")
