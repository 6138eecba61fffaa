from __future__ import annotations

import logging
from dataclasses import dataclass, field

from clickpath.channel import CommandChannel
from clickpath.errors import CheckpointMismatch, FlowLoadError
from clickpath.session import Session

from .catalog import FlowCatalog
from .steps import Checkpoint

logger = logging.getLogger(__name__)


@dataclass
class CheckpointResult:
    name: str
    clipboard: list[str] = field(default_factory=list)


class CheckpointValidator:
    """
    Runs a checkpoint's actions in order and fails on the first mismatch.

    A `copy` action carrying `expect` compares the text returned by that same
    copy command verbatim: no trimming, case-sensitive. Clicks resolve through
    the session's scope chain but never switch context.
    """

    def __init__(self, channel: CommandChannel, catalog: FlowCatalog | None = None) -> None:
        self.channel = channel
        self.catalog = catalog

    def load(self, ref: Checkpoint | str) -> Checkpoint:
        if isinstance(ref, Checkpoint):
            return ref
        if self.catalog is None:
            raise FlowLoadError(f"Named checkpoint '{ref}' needs a checkpoints directory")
        return self.catalog.load_checkpoint(ref)

    def run(self, ref: Checkpoint | str, session: Session) -> CheckpointResult:
        checkpoint = self.load(ref)
        result = CheckpointResult(name=checkpoint.name)
        for action in checkpoint.actions:
            if action.type in ("click", "doubleClick"):
                resolved = session.find_click(str(action.name))
                self.channel.send(
                    "click",
                    x=resolved.record.x,
                    y=resolved.record.y,
                    doubleClick=action.type == "doubleClick",
                )
            elif action.type == "copy":
                reply = self.channel.send("copy")
                text = str(reply.get("clipboard") or "")
                result.clipboard.append(text)
                if action.expect is not None and text != action.expect:
                    raise CheckpointMismatch(checkpoint.name, action.expect, text)
        logger.info("Checkpoint passed: %s", checkpoint.name)
        return result
