"""Resilient call executor — failover across the endpoint pool.

Every read or write against the ledger goes through ``execute``. The
endpoints are tried strictly one at a time, in pool order. The first
success wins; a failure is recorded and the next endpoint is tried.
There is no delay between endpoints: failover is the retry strategy.

Writes are never handed to the executor as a single "send and wait"
unit. They are split into prepare / broadcast / settle steps (see
``riddle.chain.gateway``) so a broadcast that already reached the network
is not re-created on the next endpoint.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from riddle.errors import (
    NON_RETRYABLE,
    AllEndpointsExhausted,
    EndpointError,
)
from riddle.transport.pool import EndpointPool

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[str], T]


class ResilientExecutor:
    """Runs an operation against each endpoint in turn until one succeeds.

    Usage:
        executor = ResilientExecutor(EndpointPool(urls))
        active = executor.execute(lambda ep: gateway.is_active(ep), label="isActive")
    """

    def __init__(self, pool: EndpointPool) -> None:
        self._pool = pool

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    def execute(self, operation: Operation[T], *, label: str = "call") -> T:
        """Return the first successful ``operation(endpoint)`` result.

        Raises AllEndpointsExhausted if every endpoint fails. Errors in
        NON_RETRYABLE are raised immediately: another endpoint would give
        the same answer.
        """
        errors: list[EndpointError] = []
        for attempt, endpoint in enumerate(self._pool, start=1):
            try:
                result = operation(endpoint)
            except NON_RETRYABLE:
                raise
            except Exception as e:
                failure = EndpointError(endpoint, e)
                errors.append(failure)
                logger.warning(
                    "%s failed on endpoint %d/%d: %s",
                    label, attempt, len(self._pool), failure,
                )
                continue
            if errors:
                logger.info("%s succeeded on %s after %d failover(s)", label, endpoint, len(errors))
            return result
        raise AllEndpointsExhausted(label, errors)
