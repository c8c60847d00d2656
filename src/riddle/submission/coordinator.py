"""Submission coordinator — pairs an answer write with its on-chain result.

One coordinator per participant session. It drives a single attempt at
a time through the submission state machine:

    submit(answer)       IDLE → PENDING (broadcast) or FAILED (rejected)
    await_settlement()   PENDING → CONFIRMING → CONFIRMED | FAILED
    notify_settled(tx)   reconcile against winner(), once per tx hash
    clear()              CONFIRMED | FAILED → IDLE

A CONFIRMED write only means the call executed. Whether the answer was
right is decided by re-reading ``winner`` and comparing it with the
participant's own address. Settlement notifications may arrive more
than once (polling, receipt watchers, the UI); reconciliation runs once
per transaction hash and later notifications get the recorded verdict.

After reconciliation the result stays visible for a short hold and is
then cleared by the scheduler, ready for the next attempt.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Any, Callable, Optional

from eth_account.signers.local import LocalAccount

from riddle.chain.gateway import LedgerGateway
from riddle.chain.snapshot import fetch_remote_state
from riddle.chain.writes import send_write, settle_write
from riddle.errors import BroadcastUnconfirmed, InvalidTransition, RiddleError
from riddle.models.ledger import same_identity
from riddle.models.submission import (
    AttemptVerdict,
    DisplayResult,
    SubmissionAttempt,
    SubmissionPhase,
)
from riddle.submission.state_machine import SubmissionStateMachine
from riddle.transport.executor import ResilientExecutor

logger = logging.getLogger(__name__)


MAX_ANSWER_LENGTH = 12
CORRECT_HOLD_SECONDS = 3.0
WRONG_HOLD_SECONDS = 1.5
REFETCH_DELAY_SECONDS = 1.5

_ANSWER_PATTERN = re.compile(r"^[A-Za-z]+$")

Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run ``callback`` after ``delay`` seconds on a daemon timer thread."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def normalize_answer(answer: str) -> str:
    """Upper-case an answer the way the contract hashes it.

    Raises ValueError for empty, non-alphabetic or over-long answers.
    """
    cleaned = answer.strip()
    if not cleaned:
        raise ValueError("Answer is empty")
    if not _ANSWER_PATTERN.match(cleaned):
        raise ValueError(f"Answer must contain letters only: {answer!r}")
    if len(cleaned) > MAX_ANSWER_LENGTH:
        raise ValueError(
            f"Answer is {len(cleaned)} letters; at most {MAX_ANSWER_LENGTH} allowed"
        )
    return cleaned.upper()


class SubmissionCoordinator:
    """Tracks one participant's answer submissions.

    Usage:
        coordinator = SubmissionCoordinator(executor, gateway, participant)
        coordinator.submit("gold")
        attempt = coordinator.await_settlement()
        attempt.display  # DisplayResult.CORRECT / WRONG / FAILED
    """

    def __init__(
        self,
        executor: ResilientExecutor,
        gateway: LedgerGateway,
        participant: LocalAccount,
        settlement_timeout: float = 120.0,
        refetch_delay: float = REFETCH_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        scheduler: Scheduler = timer_scheduler,
        on_change: Optional[Callable[[SubmissionAttempt], None]] = None,
    ) -> None:
        self._executor = executor
        self._gateway = gateway
        self._participant = participant
        self._settlement_timeout = settlement_timeout
        self._refetch_delay = refetch_delay
        self._sleep = sleep
        self._scheduler = scheduler
        self._on_change = on_change

        self._attempt = SubmissionAttempt()
        self._verdicts: dict[str, AttemptVerdict] = {}
        self._reconciling: dict[str, threading.Event] = {}
        self._submitting = False
        self._lock = threading.RLock()

    @property
    def attempt(self) -> SubmissionAttempt:
        return self._attempt

    @property
    def participant(self) -> str:
        return self._participant.address

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, answer: str) -> SubmissionAttempt:
        """Broadcast ``submitAnswer``. Only valid from IDLE."""
        normalized = normalize_answer(answer)
        with self._lock:
            if self._submitting:
                raise InvalidTransition("Cannot submit while another answer is being sent")
            if self._attempt.phase != SubmissionPhase.IDLE:
                raise InvalidTransition(
                    f"Cannot submit while attempt is {self._attempt.phase.value}"
                )
            self._submitting = True
            self._attempt = SubmissionAttempt(answer=normalized)
            attempt = self._attempt

        try:
            tx_hash = send_write(
                self._executor,
                self._gateway,
                lambda endpoint: self._gateway.prepare_submit_answer(
                    endpoint, self._participant, normalized,
                ),
                label="submitAnswer",
            )
        except BroadcastUnconfirmed as e:
            # Possibly relayed; settlement of the signed hash decides.
            tx_hash = e.tx_hash
        except RiddleError as e:
            logger.warning("Answer %s rejected before broadcast: %s", normalized, e)
            with self._lock:
                self._submitting = False
                attempt.error = e
                self._transition(attempt, SubmissionPhase.FAILED)
                self._schedule_clear(attempt, WRONG_HOLD_SECONDS)
            return attempt
        except BaseException:
            with self._lock:
                self._submitting = False
            raise

        with self._lock:
            self._submitting = False
            attempt.tx_hash = tx_hash
            self._transition(attempt, SubmissionPhase.PENDING)
        return attempt

    def await_settlement(self) -> SubmissionAttempt:
        """Wait for the pending write, then reconcile the result.

        Reconciliation errors (state unreadable on every endpoint)
        propagate. A confirmed attempt stays put and ``notify_settled``
        can be called again; a failed one is cleared after its hold.
        """
        with self._lock:
            attempt = self._attempt
            if attempt.phase != SubmissionPhase.PENDING or attempt.tx_hash is None:
                raise InvalidTransition(
                    f"Nothing to settle: attempt is {attempt.phase.value}"
                )
            self._transition(attempt, SubmissionPhase.CONFIRMING)
            tx_hash = attempt.tx_hash

        try:
            settle_write(self._executor, self._gateway, tx_hash, self._settlement_timeout)
        except RiddleError as e:
            logger.warning("Answer transaction %s did not settle: %s", tx_hash, e)
            with self._lock:
                attempt.error = e
                self._transition(attempt, SubmissionPhase.FAILED)
        else:
            with self._lock:
                self._transition(attempt, SubmissionPhase.CONFIRMED)

        self.notify_settled(tx_hash)
        return attempt

    def notify_settled(self, tx_hash: str) -> AttemptVerdict:
        """Reconcile a settled write against ``winner``. Once per tx hash.

        Concurrent notifications for the same hash wait for the first
        one's reads instead of repeating them.
        """
        with self._lock:
            known = self._verdicts.get(tx_hash)
            if known is not None:
                logger.debug("Settlement of %s already reconciled (%s)", tx_hash, known.value)
                return known

            in_flight = self._reconciling.get(tx_hash)
            if in_flight is None:
                attempt = self._attempt
                if attempt.tx_hash != tx_hash:
                    raise InvalidTransition(f"Unknown submission transaction: {tx_hash}")
                if not SubmissionStateMachine.is_terminal(attempt.phase):
                    raise InvalidTransition(
                        f"Transaction {tx_hash} has not settled (attempt is {attempt.phase.value})"
                    )
                done = threading.Event()
                self._reconciling[tx_hash] = done

        if in_flight is not None:
            in_flight.wait()
            with self._lock:
                verdict = self._verdicts.get(tx_hash)
            if verdict is None:
                raise InvalidTransition(f"Reconciliation of {tx_hash} did not complete")
            return verdict

        try:
            if self._refetch_delay > 0:
                self._sleep(self._refetch_delay)
            state = fetch_remote_state(self._executor, self._gateway)
        except BaseException:
            with self._lock:
                del self._reconciling[tx_hash]
                if attempt.phase == SubmissionPhase.FAILED:
                    self._schedule_clear(attempt, WRONG_HOLD_SECONDS)
            done.set()
            raise

        if same_identity(state.winner, self._participant.address):
            verdict = AttemptVerdict.CORRECT
        else:
            verdict = AttemptVerdict.INCORRECT
        with self._lock:
            self._verdicts[tx_hash] = verdict
            del self._reconciling[tx_hash]
            attempt.state = state
            attempt.verdict = verdict
            hold = CORRECT_HOLD_SECONDS if attempt.display == DisplayResult.CORRECT else WRONG_HOLD_SECONDS
            self._schedule_clear(attempt, hold)
        done.set()

        logger.info(
            "Answer %s (%s, %s): %s",
            attempt.answer, tx_hash, attempt.phase.value, verdict.value,
        )
        self._changed(attempt)
        return verdict

    def clear(self) -> None:
        """Drop a terminal attempt and return to IDLE. No-op when IDLE."""
        with self._lock:
            attempt = self._attempt
            if attempt.phase == SubmissionPhase.IDLE:
                return
            errors = SubmissionStateMachine.validate_transition(attempt, SubmissionPhase.IDLE)
            if errors:
                raise InvalidTransition("; ".join(errors))
            self._attempt = SubmissionAttempt()
            self._changed(self._attempt)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _transition(self, attempt: SubmissionAttempt, target: SubmissionPhase) -> None:
        errors = SubmissionStateMachine.apply_transition(attempt, target)
        if errors:
            raise InvalidTransition("; ".join(errors))
        self._changed(attempt)

    def _changed(self, attempt: SubmissionAttempt) -> None:
        if self._on_change is not None:
            self._on_change(attempt)

    def _schedule_clear(self, attempt: SubmissionAttempt, hold: float) -> None:
        self._scheduler(hold, lambda: self._auto_clear(attempt))

    def _auto_clear(self, attempt: SubmissionAttempt) -> None:
        with self._lock:
            # A newer attempt may already be in flight.
            if self._attempt is not attempt:
                return
            if SubmissionStateMachine.is_terminal(attempt.phase):
                self.clear()
