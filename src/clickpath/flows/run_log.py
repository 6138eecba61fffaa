from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _unique_dir(parent: Path, stem: str) -> Path:
    parent.mkdir(parents=True, exist_ok=True)
    candidate = parent / stem
    n = 1
    while True:
        try:
            candidate.mkdir()
            return candidate
        except FileExistsError:
            n += 1
            candidate = parent / f"{stem}-{n}"


def step_prefix(step_number: int) -> str:
    return f"{step_number:05d}"


@dataclass(frozen=True)
class RunLog:
    """One directory per flow execution: a JSON record per step plus one screenshot per completed step."""

    directory: Path

    @classmethod
    def create(cls, logs_dir: Path, flow_name: str) -> RunLog:
        return cls(_unique_dir(Path(logs_dir), f"{flow_name}_{_epoch_ms()}"))

    def child(self, step_number: int, flow_name: str) -> RunLog:
        return RunLog(_unique_dir(self.directory, f"{step_prefix(step_number)}-flow-{flow_name}"))

    def step_path(self, step_number: int, kind: str) -> Path:
        return self.directory / f"{step_prefix(step_number)}-{kind}.json"

    def screenshot_path(self, step_number: int) -> Path:
        return self.directory / f"{step_prefix(step_number)}-screenshot.png"

    def write_step(
        self,
        step_number: int,
        step: BaseModel,
        *,
        success: bool,
        error: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Path:
        kind = str(getattr(step, "type", "step"))
        record: dict[str, Any] = {
            "step": step.model_dump(mode="json", by_alias=True, exclude_none=True),
            "success": success,
        }
        if error is not None:
            record["error"] = error
        if extra:
            record.update(extra)
        path = self.step_path(step_number, kind)
        path.write_text(json.dumps(record, indent=2, ensure_ascii=False), encoding="utf-8")
        return path
