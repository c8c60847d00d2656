"""Ledger gateway — per-endpoint access to the riddle contract.

Every method takes the endpoint to use as its first argument, so each
call can be handed to the ResilientExecutor as ``lambda ep: ...``.

Writes come in three steps, each executed separately:

1. ``prepare_*``: read the nonce, estimate gas and sign locally. The
   transaction hash is fixed from here on.
2. ``broadcast``: send the signed bytes. Re-sending the same bytes on
   another endpoint cannot produce a second transaction.
3. ``wait_for_settlement``: poll for the receipt of that one hash.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from riddle.chain.abi import RIDDLE_ABI, ROTATION_EVENT_SIGNATURE
from riddle.errors import CallRejected, SettlementFailure, SettlementTimeout
from riddle.models.ledger import normalize_address

# Node replies to a re-broadcast of bytes some endpoint already relayed.
_ALREADY_SENT_MARKERS = ("already known", "nonce too low")


@dataclass(frozen=True)
class SignedWrite:
    """A signed, not yet broadcast, state-changing call."""
    label: str
    tx_hash: str
    raw_transaction: bytes
    sender: str


class LedgerGateway(Protocol):
    """What the rotation and submission layers need from the ledger."""

    def is_active(self, endpoint: str) -> bool: ...

    def current_question(self, endpoint: str) -> str: ...

    def winner(self, endpoint: str) -> Optional[str]: ...

    def authorized_caller(self, endpoint: str) -> Optional[str]: ...

    def count_rotation_events(self, endpoint: str, from_block: int = 0) -> int: ...

    def prepare_set_riddle(
        self, endpoint: str, account: LocalAccount, question: str, answer_hash: bytes,
    ) -> SignedWrite: ...

    def prepare_submit_answer(
        self, endpoint: str, account: LocalAccount, answer: str,
    ) -> SignedWrite: ...

    def broadcast(self, endpoint: str, write: SignedWrite) -> str: ...

    def wait_for_settlement(self, endpoint: str, tx_hash: str, timeout: float) -> int: ...


class Web3Gateway:
    """LedgerGateway backed by web3.py, one HTTPProvider per endpoint."""

    def __init__(
        self,
        contract_address: str,
        chain_id: int,
        request_timeout: float = 10.0,
        poll_latency: float = 1.0,
    ) -> None:
        self._address = Web3.to_checksum_address(contract_address)
        self._chain_id = chain_id
        self._request_timeout = request_timeout
        self._poll_latency = poll_latency
        self._clients: dict[str, Web3] = {}
        self._lock = threading.Lock()

    @property
    def contract_address(self) -> str:
        return self._address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def is_active(self, endpoint: str) -> bool:
        return bool(self._contract(endpoint).functions.isActive().call())

    def current_question(self, endpoint: str) -> str:
        return str(self._contract(endpoint).functions.riddle().call())

    def winner(self, endpoint: str) -> Optional[str]:
        return normalize_address(self._contract(endpoint).functions.winner().call())

    def authorized_caller(self, endpoint: str) -> Optional[str]:
        return normalize_address(self._contract(endpoint).functions.bot().call())

    def count_rotation_events(self, endpoint: str, from_block: int = 0) -> int:
        """Number of RiddleSet logs from ``from_block`` to latest."""
        topic = Web3.to_hex(Web3.keccak(text=ROTATION_EVENT_SIGNATURE))
        logs = self._client(endpoint).eth.get_logs({
            "address": self._address,
            "fromBlock": from_block,
            "toBlock": "latest",
            "topics": [topic],
        })
        return len(logs)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def prepare_set_riddle(
        self, endpoint: str, account: LocalAccount, question: str, answer_hash: bytes,
    ) -> SignedWrite:
        call = self._contract(endpoint).functions.setRiddle(question, answer_hash)
        return self._sign(endpoint, account, call, "setRiddle")

    def prepare_submit_answer(
        self, endpoint: str, account: LocalAccount, answer: str,
    ) -> SignedWrite:
        call = self._contract(endpoint).functions.submitAnswer(answer)
        return self._sign(endpoint, account, call, "submitAnswer")

    def broadcast(self, endpoint: str, write: SignedWrite) -> str:
        """Send the signed bytes.

        A node that already holds them, or has already mined their nonce,
        counts as sent; settlement of the fixed hash tells the two apart.
        """
        try:
            sent = self._client(endpoint).eth.send_raw_transaction(write.raw_transaction)
        except ContractLogicError as e:
            raise CallRejected(write.label, e) from e
        except Exception as e:
            message = str(e).lower()
            if any(marker in message for marker in _ALREADY_SENT_MARKERS):
                return write.tx_hash
            raise
        return Web3.to_hex(sent)

    def wait_for_settlement(self, endpoint: str, tx_hash: str, timeout: float) -> int:
        """Block until the receipt arrives. Returns the block number.

        Raises SettlementTimeout when the deadline passes and
        SettlementFailure when the transaction reverted.
        """
        try:
            receipt = self._client(endpoint).eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self._poll_latency,
            )
        except TimeExhausted as e:
            raise SettlementTimeout(tx_hash, timeout) from e
        if receipt["status"] != 1:
            raise SettlementFailure(tx_hash, "transaction reverted")
        return int(receipt["blockNumber"])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _sign(self, endpoint: str, account: LocalAccount, call: Any, label: str) -> SignedWrite:
        w3 = self._client(endpoint)
        nonce = w3.eth.get_transaction_count(account.address, "pending")
        try:
            tx = call.build_transaction({
                "from": account.address,
                "nonce": nonce,
                "chainId": self._chain_id,
            })
        except ContractLogicError as e:
            raise CallRejected(label, e) from e
        signed = account.sign_transaction(tx)
        return SignedWrite(
            label=label,
            tx_hash=Web3.to_hex(signed.hash),
            raw_transaction=bytes(signed.raw_transaction),
            sender=account.address,
        )

    def _client(self, endpoint: str) -> Web3:
        with self._lock:
            client = self._clients.get(endpoint)
            if client is None:
                client = Web3(HTTPProvider(
                    endpoint, request_kwargs={"timeout": self._request_timeout},
                ))
                self._clients[endpoint] = client
            return client

    def _contract(self, endpoint: str) -> Any:
        return self._client(endpoint).eth.contract(address=self._address, abi=RIDDLE_ABI)
