from __future__ import annotations


class ClickpathError(RuntimeError):
    pass


class NotFound(ClickpathError):
    """A click name or context path did not resolve."""


class StructuralConflict(ClickpathError):
    """A registry mutation would break the tree (duplicate name, bad name)."""


class CycleDetected(StructuralConflict):
    pass


class StoreError(ClickpathError):
    pass


class ConfigError(ClickpathError):
    pass


class FlowLoadError(ClickpathError):
    pass


class ChannelBusy(ClickpathError):
    pass


class CommandTimeout(ClickpathError):
    def __init__(self, action: str, timeout_s: float) -> None:
        super().__init__(f"No response to '{action}' within {timeout_s:g}s")
        self.action = action
        self.timeout_s = timeout_s


class ExecutorError(ClickpathError):
    """The executor answered with {success: false}; message is kept verbatim."""

    def __init__(self, action: str, message: str) -> None:
        super().__init__(message)
        self.action = action
        self.message = message


class CheckpointMismatch(ClickpathError):
    def __init__(self, checkpoint: str, expected: str, actual: str) -> None:
        super().__init__(f"Checkpoint '{checkpoint}' failed: expected {expected!r}, got {actual!r}")
        self.checkpoint = checkpoint
        self.expected = expected
        self.actual = actual


class StepFailed(ClickpathError):
    def __init__(self, step_number: int, kind: str, cause: BaseException | str) -> None:
        super().__init__(f"Step {step_number} ({kind}) failed: {cause}")
        self.step_number = step_number
        self.kind = kind
        self.cause = cause
