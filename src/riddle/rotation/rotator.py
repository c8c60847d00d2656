"""Rotator — check activity, choose the next riddle, publish it.

The rotator holds no state between runs and takes no lock. Two
concurrent runs that both see ``isActive == false`` may both try to
publish; at-most-once publication per inactive period rests on the
contract refusing ``setRiddle`` while a riddle is active. Callers that
want in-process serialization get it from ``RiddleService``.

Errors are not retried here: the executor already failed over at the
endpoint level, and a failed write is never re-sent as a new one.
"""

from __future__ import annotations

import logging
from typing import Optional

from eth_account.signers.local import LocalAccount

from riddle.chain.gateway import LedgerGateway
from riddle.chain.writes import send_write, settle_write
from riddle.errors import AuthorizationMismatch, BroadcastUnconfirmed, RiddleError
from riddle.models.ledger import (
    RotationActionKind,
    RotationOutcome,
    normalize_address,
    same_identity,
)
from riddle.rotation.decision import RotationDecisionEngine
from riddle.transport.executor import ResilientExecutor

logger = logging.getLogger(__name__)


class Rotator:
    """Publishes the next catalog riddle when the current one is inactive.

    Usage:
        rotator = Rotator(engine, executor, gateway, publisher, settlement_timeout=120)
        outcome = rotator.run()
    """

    def __init__(
        self,
        engine: RotationDecisionEngine,
        executor: ResilientExecutor,
        gateway: LedgerGateway,
        publisher: LocalAccount,
        settlement_timeout: float,
        check_authorization: bool = True,
    ) -> None:
        self._engine = engine
        self._executor = executor
        self._gateway = gateway
        self._publisher = publisher
        self._settlement_timeout = settlement_timeout
        self._check_authorization = check_authorization

    def run(self) -> RotationOutcome:
        try:
            action = self._engine.decide()
            if action.kind == RotationActionKind.NO_ACTION_NEEDED:
                return RotationOutcome.already_active()

            if self._check_authorization:
                self._verify_publisher()

            entry = action.entry
            logger.info("Setting next riddle (index %d): %s", action.index, entry.question)
            try:
                tx_hash = send_write(
                    self._executor,
                    self._gateway,
                    lambda endpoint: self._gateway.prepare_set_riddle(
                        endpoint, self._publisher, entry.question, entry.answer_hash,
                    ),
                    label="setRiddle",
                )
            except BroadcastUnconfirmed as e:
                tx_hash = e.tx_hash
            settle_write(self._executor, self._gateway, tx_hash, self._settlement_timeout)
            return RotationOutcome.published(action.index, tx_hash)
        except RiddleError as e:
            logger.error("Rotation failed: %s", e)
            return RotationOutcome.failed(e)

    def _verify_publisher(self) -> None:
        authorized: Optional[str] = self._executor.execute(
            self._gateway.authorized_caller, label="bot",
        )
        if not same_identity(self._publisher.address, authorized):
            raise AuthorizationMismatch(
                self._publisher.address, normalize_address(authorized) or "none",
            )
