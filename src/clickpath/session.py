from __future__ import annotations

import logging
from dataclasses import dataclass

from clickpath.registry import (
    ROOT,
    ClickRecord,
    ContextPath,
    ContextStore,
    ResolvedClick,
    format_path,
    parse_path,
    resolve_click,
)

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    Operator session state: the context tree plus the current location in it.

    Threaded explicitly through the shell and the flow runner; there is no global instance.
    """

    store: ContextStore
    current: ContextPath = ROOT

    @property
    def prompt(self) -> str:
        return f"{format_path(self.current)}>"

    def resolve_path(self, path: str) -> ContextPath:
        """Resolve path against the current context and check that it exists (NotFound otherwise)."""
        target = parse_path(path, self.current)
        self.store.node_at(target)
        return target

    def navigate(self, path: str) -> ContextPath:
        """Switch the current context; on NotFound the current context is unchanged."""
        self.current = self.resolve_path(path)
        return self.current

    def find_click(self, name: str) -> ResolvedClick:
        return resolve_click(self.store, self.current, name)

    def list_contents(self) -> list[str]:
        node = self.store.node_at(self.current)
        return [f"{name}/" for name in node.subcontexts] + list(node.clicks)

    def make_context(self, name: str) -> ContextPath:
        created = self.store.create(self.current, name)
        logger.info("Created context %s", format_path(created))
        return created

    def record_click(self, name: str, x: int, y: int, target_context: str | None = None) -> ClickRecord:
        record = ClickRecord(x=int(x), y=int(y), target_context=target_context or None)
        self.store.put_click(self.current, name, record)
        return record

    def move(self, item: str, target_path: str) -> tuple[str, ContextPath]:
        target = parse_path(target_path, self.current)
        kind = self.store.move(self.current, item, target)
        return kind, target

    def rename(self, old: str, new: str) -> str:
        return self.store.rename(self.current, old, new)
