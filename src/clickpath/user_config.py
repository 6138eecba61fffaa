from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from clickpath.app_data import get_channel_dir, get_user_config_path
from clickpath.errors import ConfigError
from clickpath.flows.runner import RunnerConfig


class ChannelSectionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    transport: Literal["pipe", "file"] = Field(
        default="pipe",
        description="'pipe' spawns the executor as a child process; 'file' talks to a separately started executor.",
    )
    poll_interval_s: float = Field(default=0.1, gt=0, description="Response polling interval.")
    timeout_s: float = Field(default=10.0, gt=0, description="Polling ceiling before a command times out.")
    request_file: str = Field(default="input.txt", description="Request artifact name (file transport).")
    response_file: str = Field(default="output.txt", description="Response artifact name (file transport).")


class RunnerSectionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_flow_depth: int = Field(default=8, ge=1, description="Maximum nesting of flow steps.")
    clipboard_settle_s: float = Field(default=0.3, ge=0, description="Delay after setClipboard.")
    screenshots: bool = Field(default=True, description="Capture a screenshot after every completed step.")


class RecordSectionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    countdown_s: int = Field(default=5, ge=0)
    fast_countdown_s: int = Field(default=2, ge=0)


class UserConfigFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel: ChannelSectionConfig = Field(default_factory=ChannelSectionConfig)
    runner: RunnerSectionConfig = Field(default_factory=RunnerSectionConfig)
    record: RecordSectionConfig = Field(default_factory=RecordSectionConfig)


@dataclass(frozen=True)
class ResolvedChannelConfig:
    transport: str
    poll_interval_s: float
    timeout_s: float
    request_path: Path
    response_path: Path


@dataclass(frozen=True)
class ResolvedRecordConfig:
    countdown_s: int
    fast_countdown_s: int


@dataclass(frozen=True)
class ResolvedUserConfig:
    channel: ResolvedChannelConfig
    runner: RunnerConfig
    record: ResolvedRecordConfig


def load_user_config(path: Path | None = None, *, channel_dir: Path | None = None) -> ResolvedUserConfig:
    """
    Load and validate clickpath.yml. A missing file yields the defaults.
    """
    cfg_path = path or get_user_config_path()
    raw: object = {}
    if cfg_path.exists():
        try:
            raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        except Exception as e:
            raise ConfigError(f"Failed to parse {cfg_path.name}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{cfg_path.name} must contain a YAML mapping at the top level.")

    try:
        cfg_file = UserConfigFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid {cfg_path.name}: {e}") from e

    ch_dir = channel_dir or get_channel_dir()
    channel = ResolvedChannelConfig(
        transport=cfg_file.channel.transport,
        poll_interval_s=cfg_file.channel.poll_interval_s,
        timeout_s=cfg_file.channel.timeout_s,
        request_path=ch_dir / cfg_file.channel.request_file,
        response_path=ch_dir / cfg_file.channel.response_file,
    )
    runner = RunnerConfig(
        max_flow_depth=cfg_file.runner.max_flow_depth,
        clipboard_settle_s=cfg_file.runner.clipboard_settle_s,
        screenshots=cfg_file.runner.screenshots,
    )
    record = ResolvedRecordConfig(
        countdown_s=cfg_file.record.countdown_s,
        fast_countdown_s=cfg_file.record.fast_countdown_s,
    )
    return ResolvedUserConfig(channel=channel, runner=runner, record=record)
