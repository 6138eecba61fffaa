from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from clickpath.errors import FlowLoadError, NotFound
from clickpath.jsonio import read_json

from .steps import Checkpoint, Flow

logger = logging.getLogger(__name__)


def _safe_name(name: str, kind: str) -> str:
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise FlowLoadError(f"Invalid {kind} name: {name!r}")
    return name


def iter_json_names(root: Path) -> Iterable[str]:
    """Yield <name> for every <name>.json directly under root, sorted."""
    if not root.exists() or not root.is_dir():
        return
    for p in sorted(root.iterdir(), key=lambda x: x.name):
        if p.is_file() and p.suffix == ".json":
            yield p.stem


@dataclass(frozen=True)
class FlowCatalog:
    """Flows in flows/<name>.json and named checkpoints in checkpoints/<name>.json."""

    flows_dir: Path
    checkpoints_dir: Path

    def list_flows(self) -> list[str]:
        return list(iter_json_names(self.flows_dir))

    def flow_path(self, name: str) -> Path:
        return self.flows_dir / f"{_safe_name(name, 'flow')}.json"

    def load_flow(self, name: str) -> Flow:
        path = self.flow_path(name)
        if not path.exists():
            raise NotFound(f"Flow '{name}' not found in {self.flows_dir}")
        return _load_model(Flow, path)

    def load_checkpoint(self, name: str) -> Checkpoint:
        path = self.checkpoints_dir / f"{_safe_name(name, 'checkpoint')}.json"
        if not path.exists():
            raise NotFound(f"Checkpoint '{name}' not found in {self.checkpoints_dir}")
        return _load_model(Checkpoint, path)


def _load_model(model: type[Flow] | type[Checkpoint], path: Path):
    try:
        raw = read_json(path)
    except Exception as e:
        raise FlowLoadError(f"Failed to read {path}: {e}") from e
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise FlowLoadError(f"Invalid {path.name}: {e}") from e
