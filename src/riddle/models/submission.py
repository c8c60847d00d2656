"""Submission attempt model — one UI-visible answer submission."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from riddle.models.ledger import RemoteState


class SubmissionPhase(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"        # broadcast, tx hash known
    CONFIRMING = "confirming"  # waiting for settlement
    CONFIRMED = "confirmed"    # call executed (answer may still be wrong)
    FAILED = "failed"          # rejected, reverted, timed out or unreachable


class AttemptVerdict(str, enum.Enum):
    """Reconciled against winner(); independent of the write outcome."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


class DisplayResult(str, enum.Enum):
    """What the terminal shows. FAILED is a system problem, WRONG is a wrong answer."""
    CORRECT = "correct"
    WRONG = "wrong"
    FAILED = "failed"


@dataclass
class SubmissionAttempt:
    """Mutable attempt owned by a single SubmissionCoordinator."""
    answer: str = ""
    tx_hash: Optional[str] = None
    phase: SubmissionPhase = SubmissionPhase.IDLE
    verdict: Optional[AttemptVerdict] = None
    state: Optional[RemoteState] = None
    error: Optional[BaseException] = None

    @property
    def display(self) -> Optional[DisplayResult]:
        """Banner for the attempt; None while in flight or unreconciled.

        A failed write shows FAILED whatever ``winner`` says: a participant
        who already won still sees their new transaction fail.
        """
        if self.phase == SubmissionPhase.FAILED:
            return DisplayResult.FAILED
        if self.verdict is None:
            return None
        if self.verdict == AttemptVerdict.CORRECT:
            return DisplayResult.CORRECT
        return DisplayResult.WRONG
