"""Fresh remote state — three concurrent reads through the executor.

Reads have no side effects, so question / isActive / winner are fetched
in parallel. This is the only place the package issues calls
concurrently; each read still fails over sequentially on its own.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from riddle.chain.gateway import LedgerGateway
from riddle.models.ledger import RemoteState
from riddle.transport.executor import ResilientExecutor


READ_FAN_OUT = 3


def fetch_remote_state(executor: ResilientExecutor, gateway: LedgerGateway) -> RemoteState:
    """Read {question, isActive, winner}. Any exhausted read propagates."""
    with ThreadPoolExecutor(max_workers=READ_FAN_OUT) as pool:
        question = pool.submit(executor.execute, gateway.current_question, label="riddle")
        active = pool.submit(executor.execute, gateway.is_active, label="isActive")
        winner = pool.submit(executor.execute, gateway.winner, label="winner")
        return RemoteState(
            question=question.result(),
            is_active=active.result(),
            winner=winner.result(),
        )
