"""Participant-side answer submission and result reconciliation."""

from riddle.submission.coordinator import SubmissionCoordinator, normalize_answer
from riddle.submission.state_machine import SubmissionStateMachine

__all__ = ["SubmissionCoordinator", "SubmissionStateMachine", "normalize_answer"]
