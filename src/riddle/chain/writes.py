"""State-changing calls through the executor: prepare, broadcast, settle.

Each step is its own ``execute`` call. Once a transaction has been signed
its hash is fixed, so failing over during broadcast or settlement only
re-sends or re-polls that same transaction.
"""

from __future__ import annotations

import logging
from typing import Callable

from riddle.chain.gateway import LedgerGateway, SignedWrite
from riddle.errors import AllEndpointsExhausted, BroadcastUnconfirmed
from riddle.transport.executor import ResilientExecutor

logger = logging.getLogger(__name__)


def send_write(
    executor: ResilientExecutor,
    gateway: LedgerGateway,
    prepare: Callable[[str], SignedWrite],
    label: str,
) -> str:
    """Sign once, broadcast, and return the transaction hash.

    Raises BroadcastUnconfirmed (carrying the hash) when every endpoint
    failed the broadcast: a node may still have relayed the bytes before
    the error, so the caller settles the hash instead of signing again.
    """
    signed = executor.execute(prepare, label=f"{label}:prepare")
    try:
        tx_hash = executor.execute(
            lambda endpoint: gateway.broadcast(endpoint, signed),
            label=f"{label}:broadcast",
        )
    except AllEndpointsExhausted as e:
        logger.warning("%s broadcast unconfirmed as %s: %s", label, signed.tx_hash, e)
        raise BroadcastUnconfirmed(signed.tx_hash, e) from e
    logger.info("%s broadcast as %s", label, tx_hash)
    return tx_hash


def settle_write(
    executor: ResilientExecutor,
    gateway: LedgerGateway,
    tx_hash: str,
    timeout: float,
) -> int:
    """Wait for ``tx_hash`` to settle. Returns the block number."""
    block = executor.execute(
        lambda endpoint: gateway.wait_for_settlement(endpoint, tx_hash, timeout),
        label=f"settle:{tx_hash}",
    )
    logger.info("%s settled in block %d", tx_hash, block)
    return block
