"""
Flows package.

This package contains:
- the flow/step/checkpoint file model
- flow and checkpoint discovery ("catalog")
- the checkpoint validator
- the step interpreter and its per-run log
"""

from .catalog import FlowCatalog
from .checkpoint import CheckpointResult, CheckpointValidator
from .run_log import RunLog
from .runner import FlowRunner, RunnerConfig, RunResult
from .steps import Checkpoint, CheckpointAction, Flow, Step

__all__ = [
    "FlowCatalog",
    "CheckpointResult",
    "CheckpointValidator",
    "RunLog",
    "FlowRunner",
    "RunnerConfig",
    "RunResult",
    "Checkpoint",
    "CheckpointAction",
    "Flow",
    "Step",
]
