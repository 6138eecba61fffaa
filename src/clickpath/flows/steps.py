from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class CheckpointAction(_Model):
    type: Literal["click", "doubleClick", "copy"]
    name: str | None = None
    expect: str | None = None

    @model_validator(mode="after")
    def _click_needs_name(self) -> CheckpointAction:
        if self.type in ("click", "doubleClick") and not self.name:
            raise ValueError(f"checkpoint action '{self.type}' requires a click name")
        return self


class Checkpoint(_Model):
    name: str
    actions: list[CheckpointAction] = Field(default_factory=list)


class ClickStep(_Model):
    type: Literal["click"]
    name: str
    double_click: bool = Field(default=False, alias="doubleClick")


class SetClipboardStep(_Model):
    type: Literal["setClipboard"]
    text: str


class PasteStep(_Model):
    type: Literal["paste"]


class CopyStep(_Model):
    type: Literal["copy"]


class KeyStep(_Model):
    type: Literal["key"]
    keys: str


class PauseStep(_Model):
    """Wait `ms` milliseconds, or block until the operator acknowledges `message`."""

    type: Literal["pause"]
    ms: int | None = Field(default=None, ge=0)
    message: str | None = None

    @model_validator(mode="after")
    def _one_mode(self) -> PauseStep:
        if (self.ms is None) == (self.message is None):
            raise ValueError("pause requires exactly one of 'ms' or 'message'")
        return self


class NavigateStep(_Model):
    type: Literal["navigate"]
    path: str


class CheckpointStep(_Model):
    type: Literal["checkpoint"]
    # Inline checkpoint, or the name of checkpoints/<name>.json
    checkpoint: Checkpoint | str


class FlowStep(_Model):
    type: Literal["flow"]
    flow_name: str = Field(alias="flowName")


class ScrollStep(_Model):
    type: Literal["scroll"]
    amount: int


Step = Annotated[
    Union[
        ClickStep,
        SetClipboardStep,
        PasteStep,
        CopyStep,
        KeyStep,
        PauseStep,
        NavigateStep,
        CheckpointStep,
        FlowStep,
        ScrollStep,
    ],
    Field(discriminator="type"),
]


class Flow(_Model):
    name: str
    description: str = ""
    allowed_context: str | None = Field(default=None, alias="allowedContext")
    steps: list[Step] = Field(default_factory=list)
