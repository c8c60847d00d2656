"""Read snapshots of the remote ledger and rotation results.

RemoteState mirrors the contract; it is never cached across rotation
decisions. RotationAction is what the decision engine proposes and
RotationOutcome is what the rotator reports to its trigger.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from riddle.models.catalog import PuzzleEntry


ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: Optional[str]) -> Optional[str]:
    """Lower-case an address; the zero address and empty values become None."""
    if not address:
        return None
    lowered = address.lower()
    if lowered == ZERO_ADDRESS:
        return None
    return lowered


def same_identity(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address equality. An empty identity matches nothing."""
    left, right = normalize_address(a), normalize_address(b)
    return left is not None and left == right


@dataclass(frozen=True)
class RemoteState:
    """Fresh read of {question, isActive, winner}."""
    question: str
    is_active: bool
    winner: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "isActive": self.is_active,
            "winner": self.winner,
        }


class RotationActionKind(str, enum.Enum):
    NO_ACTION_NEEDED = "no_action_needed"
    PUBLISH = "publish"


@dataclass(frozen=True)
class RotationAction:
    """Decision engine output: nothing to do, or publish catalog[index]."""
    kind: RotationActionKind
    index: Optional[int] = None
    entry: Optional[PuzzleEntry] = None
    history_length: Optional[int] = None

    @classmethod
    def no_action(cls) -> RotationAction:
        return cls(kind=RotationActionKind.NO_ACTION_NEEDED)

    @classmethod
    def publish(cls, index: int, entry: PuzzleEntry, history_length: int) -> RotationAction:
        return cls(
            kind=RotationActionKind.PUBLISH,
            index=index,
            entry=entry,
            history_length=history_length,
        )


class RotationStatus(str, enum.Enum):
    ALREADY_ACTIVE = "already_active"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass(frozen=True)
class RotationOutcome:
    """Result of one rotator run."""
    status: RotationStatus
    index: Optional[int] = None
    tx_hash: Optional[str] = None
    cause: Optional[BaseException] = field(default=None, compare=False)

    @classmethod
    def already_active(cls) -> RotationOutcome:
        return cls(status=RotationStatus.ALREADY_ACTIVE)

    @classmethod
    def published(cls, index: int, tx_hash: str) -> RotationOutcome:
        return cls(status=RotationStatus.PUBLISHED, index=index, tx_hash=tx_hash)

    @classmethod
    def failed(cls, cause: BaseException) -> RotationOutcome:
        return cls(status=RotationStatus.FAILED, cause=cause)

    @property
    def ok(self) -> bool:
        return self.status != RotationStatus.FAILED
