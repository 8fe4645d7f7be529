"""Ordered interaction steps against inspected elements."""

from .sequencer import (
    ActionSequencer,
    ActionStep,
    ActionType,
    CancellationToken,
    ScreenshotRecord,
    SequenceResult,
    StepRecord,
)

__all__ = [
    "ActionSequencer",
    "ActionStep",
    "ActionType",
    "CancellationToken",
    "ScreenshotRecord",
    "SequenceResult",
    "StepRecord",
]
