"""Tests for the submission coordinator.

Proves:
- Answers are normalized to upper case before submitAnswer.
- The attempt walks IDLE → PENDING → CONFIRMING → CONFIRMED | FAILED.
- Reconciliation compares winner() with the participant, case-insensitively.
- Reconciliation runs once per transaction hash, however often notified.
- A failed write is displayed as FAILED, never as a wrong answer.
- A broadcast no endpoint acknowledged keeps its hash and is settled, not re-signed.
- Results are cleared by the scheduler after their hold time.
"""

from __future__ import annotations

import threading

import pytest

from fake_ledger import ENDPOINTS, OTHER, PARTICIPANT, FakeLedger, RecordingScheduler
from riddle.errors import (
    AllEndpointsExhausted,
    CallRejected,
    InvalidTransition,
    SettlementFailure,
    SettlementTimeout,
)
from riddle.models.submission import AttemptVerdict, DisplayResult, SubmissionPhase
from riddle.submission.coordinator import (
    CORRECT_HOLD_SECONDS,
    WRONG_HOLD_SECONDS,
    SubmissionCoordinator,
    normalize_answer,
)
from riddle.transport.executor import ResilientExecutor
from riddle.transport.pool import EndpointPool


def _coordinator(ledger: FakeLedger, scheduler=None, on_change=None) -> SubmissionCoordinator:
    return SubmissionCoordinator(
        ResilientExecutor(EndpointPool(ENDPOINTS)),
        ledger,
        PARTICIPANT,
        settlement_timeout=10,
        sleep=lambda _: None,
        scheduler=scheduler or RecordingScheduler(),
        on_change=on_change,
    )


class TestNormalization:
    def test_upper_cases(self) -> None:
        assert normalize_answer("gold") == "GOLD"

    def test_strips_whitespace(self) -> None:
        assert normalize_answer("  Piano ") == "PIANO"

    @pytest.mark.parametrize("bad", ["", "   ", "two words", "c3po", "abcdefghijklm"])
    def test_rejects_invalid(self, bad: str) -> None:
        with pytest.raises(ValueError):
            normalize_answer(bad)

    def test_submitted_answer_is_normalized(self) -> None:
        ledger = FakeLedger(correct_answer="GOLD")
        coordinator = _coordinator(ledger)
        coordinator.submit("gold")
        coordinator.await_settlement()
        assert ledger.submitted == [(PARTICIPANT.address, "GOLD")]


class TestLifecycle:
    def test_submit_moves_to_pending(self) -> None:
        coordinator = _coordinator(FakeLedger())
        attempt = coordinator.submit("piano")
        assert attempt.phase == SubmissionPhase.PENDING
        assert attempt.tx_hash is not None
        assert attempt.answer == "PIANO"

    def test_phases_in_order(self) -> None:
        phases: list[SubmissionPhase] = []
        coordinator = _coordinator(FakeLedger(), on_change=lambda a: phases.append(a.phase))
        coordinator.submit("piano")
        coordinator.await_settlement()
        assert phases[:3] == [
            SubmissionPhase.PENDING,
            SubmissionPhase.CONFIRMING,
            SubmissionPhase.CONFIRMED,
        ]

    def test_submit_while_in_flight_is_caller_error(self) -> None:
        coordinator = _coordinator(FakeLedger())
        coordinator.submit("piano")
        with pytest.raises(InvalidTransition):
            coordinator.submit("organ")

    def test_submit_during_slow_broadcast_is_caller_error(self) -> None:
        ledger = FakeLedger()
        ledger.hold_prepare = threading.Event()
        coordinator = _coordinator(ledger)
        first = threading.Thread(target=coordinator.submit, args=("piano",))
        first.start()
        assert ledger.prepare_entered.wait(5)

        with pytest.raises(InvalidTransition, match="being sent"):
            coordinator.submit("organ")

        ledger.hold_prepare.set()
        first.join(5)
        assert coordinator.attempt.answer == "PIANO"
        assert coordinator.attempt.phase == SubmissionPhase.PENDING
        assert len(ledger.calls_to("prepare:submitAnswer")) == 1

    def test_await_without_pending(self) -> None:
        with pytest.raises(InvalidTransition, match="Nothing to settle"):
            _coordinator(FakeLedger()).await_settlement()

    def test_clear_returns_to_idle(self) -> None:
        coordinator = _coordinator(FakeLedger())
        coordinator.submit("organ")
        coordinator.await_settlement()
        coordinator.clear()
        assert coordinator.attempt.phase == SubmissionPhase.IDLE
        coordinator.submit("piano")
        assert coordinator.attempt.phase == SubmissionPhase.PENDING

    def test_clear_in_flight_is_caller_error(self) -> None:
        coordinator = _coordinator(FakeLedger())
        coordinator.submit("piano")
        with pytest.raises(InvalidTransition):
            coordinator.clear()

    def test_clear_when_idle_is_noop(self) -> None:
        coordinator = _coordinator(FakeLedger())
        coordinator.clear()
        assert coordinator.attempt.phase == SubmissionPhase.IDLE


class TestReconciliation:
    def test_correct_answer(self) -> None:
        ledger = FakeLedger(correct_answer="PIANO")
        coordinator = _coordinator(ledger)
        coordinator.submit("piano")
        attempt = coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.CONFIRMED
        assert attempt.verdict == AttemptVerdict.CORRECT
        assert attempt.display == DisplayResult.CORRECT
        assert attempt.state is not None
        assert attempt.state.is_active is False

    def test_wrong_answer_is_confirmed_but_incorrect(self) -> None:
        coordinator = _coordinator(FakeLedger(correct_answer="PIANO"))
        coordinator.submit("organ")
        attempt = coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.CONFIRMED
        assert attempt.verdict == AttemptVerdict.INCORRECT
        assert attempt.display == DisplayResult.WRONG

    def test_someone_else_won(self) -> None:
        ledger = FakeLedger(active=True, winner=OTHER.address, correct_answer="PIANO")
        coordinator = _coordinator(ledger)
        coordinator.submit("organ")
        assert coordinator.await_settlement().verdict == AttemptVerdict.INCORRECT

    def test_winner_comparison_is_case_insensitive(self) -> None:
        ledger = FakeLedger(correct_answer="NOTHIS")
        coordinator = _coordinator(ledger)
        coordinator.submit("organ")
        ledger.winner_address = PARTICIPANT.address.upper().replace("0X", "0x")
        coordinator.await_settlement()
        assert coordinator.attempt.verdict == AttemptVerdict.CORRECT

    def test_zero_address_is_no_winner(self) -> None:
        ledger = FakeLedger(winner="0x" + "0" * 40)
        coordinator = _coordinator(ledger)
        coordinator.submit("organ")
        assert coordinator.await_settlement().verdict == AttemptVerdict.INCORRECT

    def test_reconciles_once_per_transaction(self) -> None:
        ledger = FakeLedger(correct_answer="PIANO")
        coordinator = _coordinator(ledger)
        coordinator.submit("piano")
        attempt = coordinator.await_settlement()
        reads = len(ledger.calls_to("winner"))

        for _ in range(3):
            assert coordinator.notify_settled(attempt.tx_hash) == AttemptVerdict.CORRECT
        assert len(ledger.calls_to("winner")) == reads == 1

    def test_concurrent_notifications_reconcile_once(self) -> None:
        ledger = FakeLedger(correct_answer="PIANO")
        coordinator = _coordinator(ledger)
        attempt = coordinator.submit("piano")
        ledger.wait_for_settlement(ENDPOINTS[0], attempt.tx_hash, 10)
        # Settled outside the coordinator: move it along by hand.
        attempt.phase = SubmissionPhase.CONFIRMED

        results: list[AttemptVerdict] = []
        threads = [
            threading.Thread(target=lambda: results.append(coordinator.notify_settled(attempt.tx_hash)))
            for _ in range(5)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results == [AttemptVerdict.CORRECT] * 5
        assert len(ledger.calls_to("winner")) == 1

    def test_reads_run_without_holding_the_lock(self) -> None:
        ledger = FakeLedger(correct_answer="PIANO")
        rejected: list[InvalidTransition] = []

        def other_caller() -> None:
            try:
                coordinator.submit("organ")
            except InvalidTransition as e:
                rejected.append(e)

        def sleep(_: float) -> None:
            caller = threading.Thread(target=other_caller)
            caller.start()
            caller.join(2)

        coordinator = SubmissionCoordinator(
            ResilientExecutor(EndpointPool(ENDPOINTS)),
            ledger,
            PARTICIPANT,
            settlement_timeout=10,
            sleep=sleep,
            scheduler=RecordingScheduler(),
        )
        coordinator.submit("piano")
        assert coordinator.await_settlement().verdict == AttemptVerdict.CORRECT
        assert len(rejected) == 1

    def test_notify_before_settlement_rejected(self) -> None:
        coordinator = _coordinator(FakeLedger())
        attempt = coordinator.submit("piano")
        with pytest.raises(InvalidTransition, match="has not settled"):
            coordinator.notify_settled(attempt.tx_hash)

    def test_notify_unknown_transaction_rejected(self) -> None:
        coordinator = _coordinator(FakeLedger())
        with pytest.raises(InvalidTransition, match="Unknown"):
            coordinator.notify_settled("0x" + "ff" * 32)

    def test_unreadable_state_can_be_retried(self) -> None:
        ledger = FakeLedger(correct_answer="PIANO")
        coordinator = _coordinator(ledger)
        attempt = coordinator.submit("piano")
        original = ledger.winner

        def broken(endpoint: str):
            raise ConnectionError("winner unavailable")

        ledger.winner = broken  # type: ignore[method-assign]
        with pytest.raises(AllEndpointsExhausted):
            coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.CONFIRMED
        assert attempt.verdict is None

        ledger.winner = original  # type: ignore[method-assign]
        assert coordinator.notify_settled(attempt.tx_hash) == AttemptVerdict.CORRECT


class TestFailures:
    def test_rejected_before_broadcast(self) -> None:
        ledger = FakeLedger()
        ledger.reject_writes = True
        coordinator = _coordinator(ledger)
        attempt = coordinator.submit("piano")
        assert attempt.phase == SubmissionPhase.FAILED
        assert attempt.tx_hash is None
        assert isinstance(attempt.error, CallRejected)
        assert attempt.display == DisplayResult.FAILED

    def test_unreachable_before_broadcast(self) -> None:
        ledger = FakeLedger()
        ledger.down.update(ENDPOINTS)
        attempt = _coordinator(ledger).submit("piano")
        assert attempt.phase == SubmissionPhase.FAILED
        assert isinstance(attempt.error, AllEndpointsExhausted)

    def test_reverted_write_is_failed_not_wrong(self) -> None:
        ledger = FakeLedger()
        coordinator = _coordinator(ledger)
        coordinator.submit("piano")
        ledger.revert_on_settle = True
        attempt = coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.FAILED
        assert isinstance(attempt.error, SettlementFailure)
        assert attempt.verdict == AttemptVerdict.INCORRECT
        assert attempt.display == DisplayResult.FAILED

    def test_timeout_is_failed_and_still_reconciled(self) -> None:
        ledger = FakeLedger()
        coordinator = _coordinator(ledger)
        coordinator.submit("piano")
        ledger.timeout_on_settle = True
        attempt = coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.FAILED
        assert isinstance(attempt.error, SettlementTimeout)
        assert len(ledger.calls_to("winner")) == 1

    def test_failed_write_is_not_resent(self) -> None:
        ledger = FakeLedger()
        coordinator = _coordinator(ledger)
        coordinator.submit("piano")
        ledger.revert_on_settle = True
        coordinator.await_settlement()
        assert len(ledger.calls_to("prepare:submitAnswer")) == 1
        assert len(ledger.calls_to("broadcast")) == 1

    def test_failed_write_by_existing_winner_shows_failed(self) -> None:
        scheduler = RecordingScheduler()
        ledger = FakeLedger(active=False, winner=PARTICIPANT.address)
        coordinator = _coordinator(ledger, scheduler=scheduler)
        coordinator.submit("piano")
        ledger.revert_on_settle = True
        attempt = coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.FAILED
        assert attempt.verdict == AttemptVerdict.CORRECT
        assert attempt.display == DisplayResult.FAILED
        assert [delay for delay, _ in scheduler.scheduled] == [WRONG_HOLD_SECONDS]

    def test_failed_write_with_unreadable_state_is_cleared(self) -> None:
        scheduler = RecordingScheduler()
        ledger = FakeLedger()
        coordinator = _coordinator(ledger, scheduler=scheduler)
        attempt = coordinator.submit("piano")
        ledger.revert_on_settle = True

        def broken(endpoint: str):
            raise ConnectionError("winner unavailable")

        ledger.winner = broken  # type: ignore[method-assign]
        with pytest.raises(AllEndpointsExhausted):
            coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.FAILED
        assert attempt.display == DisplayResult.FAILED
        assert [delay for delay, _ in scheduler.scheduled] == [WRONG_HOLD_SECONDS]
        scheduler.run_all()
        assert coordinator.attempt.phase == SubmissionPhase.IDLE


class TestUnconfirmedBroadcast:
    def test_relayed_before_drop_still_settles(self) -> None:
        ledger = FakeLedger(correct_answer="PIANO")
        ledger.down_on_broadcast.add(ENDPOINTS[0])
        for endpoint in ENDPOINTS[1:]:
            ledger.broadcast_errors[endpoint] = ValueError("nonce too low")
        coordinator = _coordinator(ledger)

        attempt = coordinator.submit("piano")
        assert attempt.phase == SubmissionPhase.PENDING
        assert attempt.tx_hash is not None
        assert attempt.error is None

        coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.CONFIRMED
        assert attempt.verdict == AttemptVerdict.CORRECT
        assert ledger.submitted == [(PARTICIPANT.address, "PIANO")]
        assert len(ledger.calls_to("prepare:submitAnswer")) == 1

    def test_never_relayed_fails_with_its_hash(self) -> None:
        ledger = FakeLedger()
        for endpoint in ENDPOINTS:
            ledger.broadcast_errors[endpoint] = ConnectionError("reset")
        coordinator = _coordinator(ledger)

        attempt = coordinator.submit("piano")
        signed_hash = attempt.tx_hash
        assert signed_hash is not None

        coordinator.await_settlement()
        assert attempt.phase == SubmissionPhase.FAILED
        assert attempt.tx_hash == signed_hash
        assert isinstance(attempt.error, AllEndpointsExhausted)
        assert attempt.display == DisplayResult.FAILED
        assert ledger.submitted == []
        assert len(ledger.calls_to("prepare:submitAnswer")) == 1


class TestAutoClear:
    def test_correct_result_held_longer(self) -> None:
        scheduler = RecordingScheduler()
        coordinator = _coordinator(FakeLedger(correct_answer="PIANO"), scheduler=scheduler)
        coordinator.submit("piano")
        coordinator.await_settlement()
        assert [delay for delay, _ in scheduler.scheduled] == [CORRECT_HOLD_SECONDS]
        scheduler.run_all()
        assert coordinator.attempt.phase == SubmissionPhase.IDLE

    def test_wrong_result_hold(self) -> None:
        scheduler = RecordingScheduler()
        coordinator = _coordinator(FakeLedger(correct_answer="PIANO"), scheduler=scheduler)
        coordinator.submit("organ")
        coordinator.await_settlement()
        assert [delay for delay, _ in scheduler.scheduled] == [WRONG_HOLD_SECONDS]

    def test_immediate_failure_is_cleared(self) -> None:
        scheduler = RecordingScheduler()
        ledger = FakeLedger()
        ledger.reject_writes = True
        coordinator = _coordinator(ledger, scheduler=scheduler)
        coordinator.submit("piano")
        scheduler.run_all()
        assert coordinator.attempt.phase == SubmissionPhase.IDLE

    def test_stale_clear_does_not_touch_new_attempt(self) -> None:
        scheduler = RecordingScheduler()
        coordinator = _coordinator(FakeLedger(correct_answer="PIANO"), scheduler=scheduler)
        coordinator.submit("organ")
        coordinator.await_settlement()
        coordinator.clear()
        coordinator.submit("piano")
        scheduler.run_all()
        assert coordinator.attempt.phase == SubmissionPhase.PENDING
