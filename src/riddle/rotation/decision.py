"""Rotation decision engine — is a new riddle needed, and which one?

Protocol:
1. Read ``isActive``. An active riddle is never replaced early, and the
   history is not even read.
2. Count every ``RiddleSet`` event since ``from_block``.
3. The next catalog index is ``count mod len(catalog)``.

The event count is the only cursor. There is no separately persisted
index, so editing the catalog after rotations have happened shifts the
mapping for all later rotations. That is accepted, not corrected.
"""

from __future__ import annotations

import logging

from riddle.chain.gateway import LedgerGateway
from riddle.errors import ConfigurationError
from riddle.models.catalog import PuzzleCatalog
from riddle.models.ledger import RotationAction
from riddle.transport.executor import ResilientExecutor

logger = logging.getLogger(__name__)


class RotationDecisionEngine:
    """Derives the next rotation from fresh remote reads."""

    def __init__(
        self,
        executor: ResilientExecutor,
        gateway: LedgerGateway,
        catalog: PuzzleCatalog,
        from_block: int = 0,
    ) -> None:
        self._executor = executor
        self._gateway = gateway
        self._catalog = catalog
        self._from_block = from_block

    def decide(self) -> RotationAction:
        length = len(self._catalog)
        if length == 0:
            raise ConfigurationError("Puzzle catalog is empty; cannot choose a riddle")

        active = self._executor.execute(self._gateway.is_active, label="isActive")
        if active:
            logger.info("Riddle still active, no rotation needed")
            return RotationAction.no_action()

        history = self._executor.execute(
            lambda endpoint: self._gateway.count_rotation_events(endpoint, self._from_block),
            label="RiddleSet history",
        )
        index = history % length
        logger.info(
            "Riddle inactive: %d rotations so far, next catalog index %d of %d",
            history, index, length,
        )
        return RotationAction.publish(index, self._catalog.get(index), history)
