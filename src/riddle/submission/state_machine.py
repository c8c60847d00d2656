"""Submission state machine — enforces valid attempt transitions.

Attempt lifecycle:
    IDLE → PENDING → CONFIRMING → CONFIRMED
    IDLE, PENDING, CONFIRMING → FAILED
    CONFIRMED, FAILED → IDLE (result displayed and cleared)

State semantics:
- IDLE: nothing in flight; ``submit`` is accepted.
- PENDING: the answer was broadcast and has a transaction hash.
- CONFIRMING: waiting for the transaction to settle.
- CONFIRMED: the call executed. Says nothing about correctness.
- FAILED: rejected, reverted, timed out or no endpoint reachable.

Fail-closed: any transition not listed is an error.
"""

from __future__ import annotations

from riddle.models.submission import SubmissionAttempt, SubmissionPhase


_TRANSITIONS: dict[SubmissionPhase, set[SubmissionPhase]] = {
    SubmissionPhase.IDLE: {SubmissionPhase.PENDING, SubmissionPhase.FAILED},
    SubmissionPhase.PENDING: {SubmissionPhase.CONFIRMING, SubmissionPhase.FAILED},
    SubmissionPhase.CONFIRMING: {SubmissionPhase.CONFIRMED, SubmissionPhase.FAILED},
    SubmissionPhase.CONFIRMED: {SubmissionPhase.IDLE},
    SubmissionPhase.FAILED: {SubmissionPhase.IDLE},
}


class SubmissionStateMachine:
    """Validates and applies attempt phase transitions.

    Pure computation. Network calls and scheduling belong to the
    coordinator.
    """

    @staticmethod
    def validate_transition(
        attempt: SubmissionAttempt,
        target: SubmissionPhase,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = attempt.phase
        allowed = _TRANSITIONS.get(current, set())

        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid submission transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def apply_transition(
        attempt: SubmissionAttempt,
        target: SubmissionPhase,
    ) -> list[str]:
        """Validate and apply a transition. Mutates attempt.phase on success."""
        errors = SubmissionStateMachine.validate_transition(attempt, target)
        if errors:
            return errors
        attempt.phase = target
        return []

    @staticmethod
    def is_terminal(phase: SubmissionPhase) -> bool:
        """Terminal for the attempt: only clearing back to IDLE remains."""
        return phase in (SubmissionPhase.CONFIRMED, SubmissionPhase.FAILED)

    @staticmethod
    def valid_transitions(phase: SubmissionPhase) -> set[SubmissionPhase]:
        return set(_TRANSITIONS.get(phase, set()))
