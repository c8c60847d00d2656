"""Ledger access — contract ABI, web3 gateway and state snapshots."""

from riddle.chain.gateway import LedgerGateway, SignedWrite, Web3Gateway
from riddle.chain.snapshot import fetch_remote_state
from riddle.chain.writes import send_write, settle_write

__all__ = [
    "LedgerGateway",
    "SignedWrite",
    "Web3Gateway",
    "fetch_remote_state",
    "send_write",
    "settle_write",
]
