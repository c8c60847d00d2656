"""Error taxonomy for ledger access, rotation and submissions.

Only EndpointError is absorbed (inside the executor, where it triggers
failover). Every other kind reaches the Rotator / Coordinator caller and
is surfaced as a typed outcome.
"""

from __future__ import annotations

from typing import Optional


class RiddleError(Exception):
    """Base class for all riddle errors."""


class ConfigurationError(RiddleError):
    """Startup precondition violated (empty endpoint list, empty catalog,
    missing credential or contract address)."""


class EndpointError(RiddleError):
    """A single endpoint failed. Non-fatal: the executor moves on."""

    def __init__(self, endpoint: str, cause: BaseException) -> None:
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"{endpoint}: {type(cause).__name__}: {cause}")


class AllEndpointsExhausted(RiddleError):
    """Every endpoint in the pool failed for one call."""

    def __init__(self, label: str, errors: list[EndpointError]) -> None:
        self.label = label
        self.errors = list(errors)
        last = self.last_error
        detail = f"{type(last).__name__}: {last}" if last is not None else "no endpoints tried"
        super().__init__(
            f"{label}: all {len(self.errors)} endpoints failed (last: {detail})"
        )

    @property
    def last_error(self) -> Optional[BaseException]:
        """The underlying cause reported by the last endpoint tried."""
        if not self.errors:
            return None
        return self.errors[-1].cause


class BroadcastUnconfirmed(AllEndpointsExhausted):
    """No endpoint acknowledged a signed write, but some may have relayed it.

    The transaction hash is fixed, so settlement decides whether it landed.
    """

    def __init__(self, tx_hash: str, exhausted: AllEndpointsExhausted) -> None:
        self.tx_hash = tx_hash
        super().__init__(exhausted.label, exhausted.errors)


class CallRejected(RiddleError):
    """The contract refused the call (revert). Same answer on every endpoint."""

    def __init__(self, label: str, cause: BaseException) -> None:
        self.label = label
        self.cause = cause
        super().__init__(f"{label} rejected by contract: {cause}")


class AuthorizationMismatch(RiddleError):
    """The signing identity is not the contract's authorized publisher."""

    def __init__(self, signer: str, authorized: str) -> None:
        self.signer = signer
        self.authorized = authorized
        super().__init__(
            f"Signer {signer} is not the authorized publisher ({authorized})"
        )


class SettlementFailure(RiddleError):
    """A broadcast write did not settle successfully. Never retried automatically."""

    def __init__(self, tx_hash: str, reason: str) -> None:
        self.tx_hash = tx_hash
        self.reason = reason
        super().__init__(f"Transaction {tx_hash} failed to settle: {reason}")


class SettlementTimeout(SettlementFailure):
    """The settlement deadline expired before a receipt was observed."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(tx_hash, f"no receipt after {timeout:g}s")


class InvalidTransition(RiddleError):
    """Submission state machine used out of order (caller error)."""


# Raised straight through the executor; retrying on another endpoint
# cannot change the outcome.
NON_RETRYABLE: tuple[type[RiddleError], ...] = (
    CallRejected,
    AuthorizationMismatch,
    SettlementFailure,
)
