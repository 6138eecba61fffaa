from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import click
from lmnr import observe

from clickpath.channel import CommandChannel
from clickpath.errors import ClickpathError, NotFound, StepFailed
from clickpath.registry import ContextPath, format_path, is_within, parse_path
from clickpath.session import Session

from .catalog import FlowCatalog
from .checkpoint import CheckpointValidator
from .run_log import RunLog
from .steps import (
    CheckpointStep,
    ClickStep,
    CopyStep,
    Flow,
    FlowStep,
    KeyStep,
    NavigateStep,
    PasteStep,
    PauseStep,
    ScrollStep,
    SetClipboardStep,
    Step,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    max_flow_depth: int = 8
    clipboard_settle_s: float = 0.3
    screenshots: bool = True


@dataclass
class RunResult:
    flow_name: str
    success: bool
    log_dir: Path
    steps_completed: int = 0
    failed_step: int | None = None
    error: str | None = None


@dataclass
class _Frame:
    """One active flow on the interpreter call stack."""

    flow: Flow
    log: RunLog
    entry_context: ContextPath
    index: int = 0
    completed: int = 0

    @property
    def step_number(self) -> int:
        return self.index + 1

    @property
    def step(self) -> Step:
        return self.flow.steps[self.index]


def _prompt_acknowledge(message: str) -> None:
    input(f"{message} (Press Enter to continue)")


class FlowRunner:
    """
    Executes a flow's steps strictly one at a time.

    `flow` steps push the called flow onto an explicit call stack (bounded by
    `max_flow_depth`) instead of recursing. A Fatal step failure stops the run,
    records the failure in the run log, restores every active flow's entry
    context, and returns a failed RunResult; nothing is retried.
    """

    def __init__(
        self,
        session: Session,
        channel: CommandChannel,
        catalog: FlowCatalog,
        logs_dir: str | Path,
        *,
        cfg: RunnerConfig = RunnerConfig(),
        acknowledge: Callable[[str], None] = _prompt_acknowledge,
        log: Callable[[str], None] = print,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.channel = channel
        self.catalog = catalog
        self.logs_dir = Path(logs_dir)
        self.cfg = cfg
        self.acknowledge = acknowledge
        self.log = log
        self.sleep = sleep
        self.checkpoints = CheckpointValidator(channel, catalog)

    @observe(name="run_flow")
    def run(self, flow_name: str) -> RunResult:
        flow = self.catalog.load_flow(flow_name)
        self.log(f"Executing flow: {flow.name or flow_name}")
        top = self._enter(flow, RunLog.create(self.logs_dir, flow_name))
        stack: list[_Frame] = [top]

        while stack:
            frame = stack[-1]
            if frame.index >= len(frame.flow.steps):
                stack.pop()
                self._leave(frame)
                self.log(f"{self._indent(stack)}Flow '{frame.flow.name}' completed successfully")
                if stack:
                    caller = stack[-1]
                    self._complete(caller, {"flowLog": str(frame.log.directory)})
                continue

            step = frame.step
            self.log(f"{self._indent(stack[:-1])}Step {frame.step_number}: {step.type}")
            try:
                if isinstance(step, FlowStep):
                    stack.append(self._call(stack, step))
                    continue
                extra = self._execute(step)
            except ClickpathError as e:
                return self._abort(flow_name, stack, top, e)
            self._complete(frame, extra)

        return RunResult(
            flow_name=flow_name,
            success=True,
            log_dir=top.log.directory,
            steps_completed=top.completed,
        )

    # -- call stack -----------------------------------------------------------

    def _enter(self, flow: Flow, run_log: RunLog) -> _Frame:
        if flow.allowed_context:
            allowed = parse_path(flow.allowed_context)
            if not is_within(self.session.current, allowed):
                logger.warning(
                    "Flow %s expects context %s but current is %s",
                    flow.name,
                    format_path(allowed),
                    format_path(self.session.current),
                )
        return _Frame(flow=flow, log=run_log, entry_context=self.session.current)

    def _leave(self, frame: _Frame) -> None:
        self.session.current = frame.entry_context

    def _call(self, stack: list[_Frame], step: FlowStep) -> _Frame:
        if len(stack) >= self.cfg.max_flow_depth:
            chain = " -> ".join(f.flow.name for f in stack)
            raise ClickpathError(
                f"Flow nesting exceeds max depth {self.cfg.max_flow_depth} calling '{step.flow_name}' ({chain})"
            )
        caller = stack[-1]
        flow = self.catalog.load_flow(step.flow_name)
        return self._enter(flow, caller.log.child(caller.step_number, step.flow_name))

    def _complete(self, frame: _Frame, extra: dict[str, Any] | None) -> None:
        number = frame.step_number
        frame.log.write_step(number, frame.step, success=True, extra=extra)
        if self.cfg.screenshots:
            shot = frame.log.screenshot_path(number)
            try:
                self.channel.send("screenshot", filename=str(shot.resolve()))
            except ClickpathError as e:
                logger.warning("Screenshot for step %d failed: %s", number, e)
        frame.completed += 1
        frame.index += 1

    def _abort(self, flow_name: str, stack: list[_Frame], top: _Frame, error: ClickpathError) -> RunResult:
        """Unwind every active frame: record the failure and restore each entry context."""
        failed = stack[-1]
        message = str(error)
        self.log(f"{self._indent(stack[:-1])}Step {failed.step_number} failed: {message}")
        cause: ClickpathError = error
        while stack:
            frame = stack.pop()
            frame.log.write_step(frame.step_number, frame.step, success=False, error=str(cause))
            self._leave(frame)
            cause = StepFailed(frame.step_number, frame.step.type, f"flow '{frame.flow.name}' failed: {cause}")
        return RunResult(
            flow_name=flow_name,
            success=False,
            log_dir=top.log.directory,
            steps_completed=top.completed,
            failed_step=top.step_number,
            error=message,
        )

    @staticmethod
    def _indent(stack: list[_Frame]) -> str:
        return "  " * len(stack)

    # -- steps ----------------------------------------------------------------

    def _execute(self, step: Step) -> dict[str, Any] | None:
        if isinstance(step, NavigateStep):
            try:
                self.session.navigate(step.path)
            except NotFound as e:
                self.log(f"  {e}")
                return {"navigated": False}
            return {"context": format_path(self.session.current)}

        if isinstance(step, ClickStep):
            resolved = self.session.find_click(step.name)
            record = resolved.record
            self.channel.send("click", x=record.x, y=record.y, doubleClick=step.double_click)
            extra: dict[str, Any] = {"resolvedFrom": format_path(resolved.defined_in), "x": record.x, "y": record.y}
            if record.target_context:
                try:
                    self.session.navigate(record.target_context)
                except NotFound as e:
                    self.log(f"  {e}")
                extra["context"] = format_path(self.session.current)
            return extra

        if isinstance(step, SetClipboardStep):
            self.channel.send("setClipboard", text=step.text)
            self.sleep(self.cfg.clipboard_settle_s)
            return None

        if isinstance(step, CopyStep):
            reply = self.channel.send("copy")
            return {"clipboard": str(reply.get("clipboard") or "")}

        if isinstance(step, PasteStep):
            self.channel.send("paste")
            return None

        if isinstance(step, KeyStep):
            self.channel.send("key", keys=step.keys)
            return None

        if isinstance(step, PauseStep):
            if step.ms is not None:
                self.sleep(step.ms / 1000.0)
            else:
                try:
                    self.acknowledge(str(step.message))
                except (EOFError, KeyboardInterrupt, click.Abort) as e:
                    raise ClickpathError(f"Pause not acknowledged: {step.message}") from e
            return None

        if isinstance(step, CheckpointStep):
            result = self.checkpoints.run(step.checkpoint, self.session)
            return {"checkpoint": result.name, "clipboard": result.clipboard}

        if isinstance(step, ScrollStep):
            self.channel.send("scroll", amount=step.amount)
            return None

        raise ClickpathError(f"Unsupported step type: {step.type}")
