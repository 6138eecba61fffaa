from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from clickpath.errors import CycleDetected, NotFound, StoreError, StructuralConflict
from clickpath.jsonio import read_json, write_json_atomic

from .paths import ROOT, ROOT_KEY, ContextPath, format_path, is_within, validate_name

logger = logging.getLogger(__name__)


class ClickRecord(BaseModel):
    """A recorded screen coordinate plus an optional context to switch to afterwards."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    x: int
    y: int
    target_context: str | None = Field(default=None, alias="targetContext")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ContextNode(BaseModel):
    model_config = ConfigDict(extra="forbid")

    clicks: dict[str, ClickRecord] = Field(default_factory=dict)
    subcontexts: dict[str, ContextNode] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _names_unique(self) -> ContextNode:
        both = sorted(set(self.clicks) & set(self.subcontexts))
        if both:
            raise ValueError(f"names used by both a click and a subcontext: {both}")
        return self

    def has_entry(self, name: str) -> bool:
        return name in self.clicks or name in self.subcontexts

    def to_dict(self) -> dict[str, Any]:
        return {
            "clicks": {k: v.to_dict() for k, v in self.clicks.items()},
            "subcontexts": {k: v.to_dict() for k, v in self.subcontexts.items()},
        }


ContextNode.model_rebuild()


def _migrate(raw: Any) -> tuple[dict[str, Any], bool]:
    """Return the root node payload and whether the legacy flat layout was migrated."""
    if not isinstance(raw, dict) or not isinstance(raw.get("contexts"), dict):
        raise StoreError("context store must be an object with a 'contexts' mapping")
    contexts = raw["contexts"]
    if ROOT_KEY in contexts:
        return contexts[ROOT_KEY], False
    # Legacy: a flat map of named subcontexts without an explicit root.
    return {"clicks": {}, "subcontexts": dict(contexts)}, True


class ContextStore:
    """
    Persisted tree of named clicks and sub-namespaces.

    Every mutating call rewrites the whole tree to disk before returning.
    """

    def __init__(self, path: str | Path, root: ContextNode | None = None) -> None:
        self.path = Path(path)
        self.root = root if root is not None else ContextNode()

    @classmethod
    def load(cls, path: str | Path) -> ContextStore:
        path_p = Path(path)
        if not path_p.exists():
            return cls(path_p)
        try:
            raw = read_json(path_p)
        except Exception as e:
            raise StoreError(f"Failed to read context store {path_p}: {e}") from e
        root_raw, migrated = _migrate(raw)
        try:
            root = ContextNode.model_validate(root_raw)
        except ValidationError as e:
            raise StoreError(f"Invalid context store {path_p}: {e}") from e
        store = cls(path_p, root)
        if migrated:
            logger.info("Migrated legacy context store layout: %s", path_p)
            store.save()
        return store

    def to_dict(self) -> dict[str, Any]:
        return {"contexts": {ROOT_KEY: self.root.to_dict()}}

    def save(self) -> None:
        try:
            write_json_atomic(self.path, self.to_dict())
        except OSError as e:
            raise StoreError(f"Failed to write context store {self.path}: {e}") from e

    # -- lookup ---------------------------------------------------------------

    def node_at(self, path: ContextPath) -> ContextNode:
        node = self.root
        for i, name in enumerate(path):
            child = node.subcontexts.get(name)
            if child is None:
                raise NotFound(f"Context '{format_path(path[: i + 1])}' not found")
            node = child
        return node

    def exists(self, path: ContextPath) -> bool:
        try:
            self.node_at(path)
        except NotFound:
            return False
        return True

    def iter_context_paths(self, start: ContextPath = ROOT) -> Iterator[ContextPath]:
        """Yield every context path below start (pre-order, start itself excluded)."""
        stack = [(start, self.node_at(start))]
        while stack:
            path, node = stack.pop()
            if path != start:
                yield path
            for name in reversed(list(node.subcontexts)):
                stack.append((path + (name,), node.subcontexts[name]))

    # -- mutations ------------------------------------------------------------

    def create(self, parent: ContextPath, name: str) -> ContextPath:
        validate_name(name)
        node = self.node_at(parent)
        if node.has_entry(name):
            raise StructuralConflict(f"'{name}' already exists in {format_path(parent)}")
        node.subcontexts[name] = ContextNode()
        self.save()
        return parent + (name,)

    def put_click(self, parent: ContextPath, name: str, record: ClickRecord) -> None:
        """Store a click; re-recording an existing click replaces it."""
        validate_name(name)
        node = self.node_at(parent)
        if name in node.subcontexts:
            raise StructuralConflict(f"'{name}' is a context in {format_path(parent)}")
        node.clicks[name] = record
        self.save()

    def move(self, parent: ContextPath, item: str, target: ContextPath) -> str:
        """Move a click or subcontext of parent into target. Returns "click" or "context"."""
        node = self.node_at(parent)
        if item in node.clicks:
            kind = "click"
        elif item in node.subcontexts:
            kind = "context"
        else:
            raise NotFound(f"Item '{item}' not found in {format_path(parent)}")

        dest = self.node_at(target)
        if kind == "context" and is_within(target, parent + (item,)):
            raise CycleDetected(f"Cannot move '{item}' into its own subtree ({format_path(target)})")
        if target == parent:
            raise StructuralConflict(f"'{item}' is already in {format_path(target)}")
        if dest.has_entry(item):
            raise StructuralConflict(f"'{item}' already exists in {format_path(target)}")

        if kind == "click":
            dest.clicks[item] = node.clicks.pop(item)
        else:
            dest.subcontexts[item] = node.subcontexts.pop(item)
        self.save()
        return kind

    def rename(self, parent: ContextPath, old: str, new: str) -> str:
        validate_name(new)
        node = self.node_at(parent)
        if not node.has_entry(old):
            raise NotFound(f"Item '{old}' not found in {format_path(parent)}")
        if node.has_entry(new):
            raise StructuralConflict(f"'{new}' already exists in {format_path(parent)}")
        if old in node.clicks:
            node.clicks = {(new if k == old else k): v for k, v in node.clicks.items()}
            kind = "click"
        else:
            node.subcontexts = {(new if k == old else k): v for k, v in node.subcontexts.items()}
            kind = "context"
        self.save()
        return kind
