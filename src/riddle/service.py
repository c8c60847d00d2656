"""Riddle service — facade wiring configuration, ledger access and flows.

This is the interface the HTTP trigger and the CLI use. It builds the
endpoint pool, executor, gateway, catalog and publisher account once,
at construction, so configuration problems surface at startup.

All operations produce typed results (ServiceResult). Rotations are
serialized within this process: a second trigger waits for the first
and then re-reads ``isActive``, which is true by then. Separate
processes still race; for those the contract's own guard against
replacing an active riddle is what prevents a double publish.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from riddle.chain.gateway import LedgerGateway, Web3Gateway
from riddle.chain.snapshot import fetch_remote_state
from riddle.config import RiddleConfig, format_private_key
from riddle.errors import ConfigurationError, RiddleError
from riddle.models.catalog import PuzzleCatalog
from riddle.models.ledger import RotationStatus
from riddle.models.submission import SubmissionPhase
from riddle.rotation.decision import RotationDecisionEngine
from riddle.rotation.rotator import Rotator
from riddle.submission.coordinator import REFETCH_DELAY_SECONDS, SubmissionCoordinator
from riddle.transport.executor import ResilientExecutor

logger = logging.getLogger(__name__)


MESSAGE_STILL_ACTIVE = "Riddle still active, no action needed"
MESSAGE_PUBLISHED = "New riddle set"


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class RiddleService:
    """Unified facade over rotation, state reads and submissions.

    Usage:
        config = RiddleConfig.from_env()
        service = RiddleService(config)

        result = service.rotate()
        result = service.state()
        result = service.submit_answer(participant_key, "gold")
    """

    def __init__(
        self,
        config: RiddleConfig,
        gateway: Optional[LedgerGateway] = None,
        catalog: Optional[PuzzleCatalog] = None,
        require_publisher: bool = True,
    ) -> None:
        self._config = config
        self._executor = ResilientExecutor(config.endpoints)
        self._gateway: LedgerGateway = gateway or Web3Gateway(
            config.contract_address,
            config.chain_id,
            request_timeout=config.rpc_timeout,
        )
        self._catalog = catalog if catalog is not None else config.load_catalog()
        if len(self._catalog) == 0:
            raise ConfigurationError("Puzzle catalog is empty")

        self._publisher: Optional[LocalAccount] = None
        if require_publisher or config.publisher_key:
            self._publisher = _account_from_key(config.require_publisher_key(), "BOT_PRIVATE_KEY")

        self._engine = RotationDecisionEngine(
            self._executor,
            self._gateway,
            self._catalog,
            from_block=config.history_from_block,
        )
        self._rotation_lock = threading.Lock()

    @property
    def config(self) -> RiddleConfig:
        return self._config

    @property
    def executor(self) -> ResilientExecutor:
        return self._executor

    @property
    def catalog(self) -> PuzzleCatalog:
        return self._catalog

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotate(self) -> ServiceResult:
        """Publish the next riddle if the current one is inactive."""
        if self._publisher is None:
            return ServiceResult(
                success=False,
                errors=["Missing BOT_PRIVATE_KEY environment variable"],
            )
        rotator = Rotator(
            self._engine,
            self._executor,
            self._gateway,
            self._publisher,
            settlement_timeout=self._config.settlement_timeout,
            check_authorization=self._config.check_authorization,
        )
        with self._rotation_lock:
            outcome = rotator.run()

        if outcome.status == RotationStatus.ALREADY_ACTIVE:
            return ServiceResult(success=True, data={"message": MESSAGE_STILL_ACTIVE})
        if outcome.status == RotationStatus.PUBLISHED:
            return ServiceResult(
                success=True,
                data={
                    "message": MESSAGE_PUBLISHED,
                    "riddleIndex": outcome.index,
                    "txHash": outcome.tx_hash,
                },
            )
        return ServiceResult(success=False, errors=[str(outcome.cause)])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def state(self) -> ServiceResult:
        """Fresh {question, isActive, winner} snapshot."""
        try:
            snapshot = fetch_remote_state(self._executor, self._gateway)
        except RiddleError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return ServiceResult(success=True, data=snapshot.to_dict())

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def coordinator(self, participant_key: str, **options: Any) -> SubmissionCoordinator:
        """A fresh coordinator for one participant session."""
        options.setdefault("settlement_timeout", self._config.settlement_timeout)
        return SubmissionCoordinator(
            self._executor,
            self._gateway,
            _account_from_key(participant_key, "participant key"),
            **options,
        )

    def submit_answer(
        self,
        participant_key: str,
        answer: str,
        refetch_delay: float = REFETCH_DELAY_SECONDS,
    ) -> ServiceResult:
        """Submit, wait for settlement and reconcile in one call."""
        try:
            # One-shot flow: nothing is displayed, so nothing needs auto-clearing.
            coordinator = self.coordinator(
                participant_key,
                refetch_delay=refetch_delay,
                scheduler=lambda delay, callback: None,
            )
            attempt = coordinator.submit(answer)
            if attempt.phase == SubmissionPhase.PENDING:
                attempt = coordinator.await_settlement()
        except (RiddleError, ValueError) as e:
            return ServiceResult(success=False, errors=[str(e)])

        data: dict[str, Any] = {
            "answer": attempt.answer,
            "txHash": attempt.tx_hash,
            "phase": attempt.phase.value,
            "result": attempt.display.value if attempt.display else None,
        }
        if attempt.state is not None:
            data["state"] = attempt.state.to_dict()
        if attempt.error is not None:
            return ServiceResult(success=False, errors=[str(attempt.error)], data=data)
        return ServiceResult(success=True, data=data)


def _account_from_key(key: str, name: str) -> LocalAccount:
    try:
        return Account.from_key(format_private_key(key))
    except Exception as e:  # eth_keys raises its own ValidationError
        raise ConfigurationError(f"Invalid {name}: {e}") from e
