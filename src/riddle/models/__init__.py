"""Data models — catalog entries, ledger snapshots, submission attempts."""

from riddle.models.catalog import PuzzleCatalog, PuzzleEntry
from riddle.models.ledger import (
    RemoteState,
    RotationAction,
    RotationActionKind,
    RotationOutcome,
    RotationStatus,
)
from riddle.models.submission import (
    AttemptVerdict,
    DisplayResult,
    SubmissionAttempt,
    SubmissionPhase,
)

__all__ = [
    "AttemptVerdict",
    "DisplayResult",
    "PuzzleCatalog",
    "PuzzleEntry",
    "RemoteState",
    "RotationAction",
    "RotationActionKind",
    "RotationOutcome",
    "RotationStatus",
    "SubmissionAttempt",
    "SubmissionPhase",
]
