"""Process configuration — loaded once at startup from the environment.

Values come from environment variables, optionally seeded from a .env
file through python-dotenv. A missing contract address or credential is
a startup failure (ConfigurationError), never something retried later.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from web3 import Web3

from riddle.errors import ConfigurationError
from riddle.models.catalog import PuzzleCatalog
from riddle.transport.pool import EndpointPool


SEPOLIA_CHAIN_ID = 11155111
DEFAULT_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"
DEFAULT_RPC_LIST = Path("rpc-list.json")
DEFAULT_RIDDLES = Path("riddles.json")


def format_private_key(key: str) -> str:
    """Accept keys with or without the 0x prefix."""
    key = key.strip()
    return key if key.startswith("0x") else f"0x{key}"


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _parse_number(name: str, raw: str, kind: type) -> float:
    try:
        value = kind(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class RiddleConfig:
    """Everything the rotator and submission client need at startup."""

    contract_address: str
    endpoints: EndpointPool
    catalog_path: Path
    publisher_key: Optional[str] = None
    chain_id: int = SEPOLIA_CHAIN_ID
    settlement_timeout: float = 120.0
    history_from_block: int = 0
    check_authorization: bool = True
    rpc_timeout: float = 10.0

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> RiddleConfig:
        """Build from ``env`` (default: os.environ after loading .env)."""
        if env is None:
            load_dotenv(env_file)
            env = os.environ

        address = env.get("CONTRACT_ADDRESS", "").strip()
        if not address:
            raise ConfigurationError("Missing CONTRACT_ADDRESS environment variable")
        if not Web3.is_address(address):
            raise ConfigurationError(f"CONTRACT_ADDRESS is not an address: {address!r}")

        rpc_list = Path(env.get("RPC_LIST_PATH", str(DEFAULT_RPC_LIST)))
        if rpc_list.exists():
            endpoints = EndpointPool.from_file(rpc_list)
        else:
            endpoints = EndpointPool([env.get("SEPOLIA_RPC_URL") or DEFAULT_RPC_URL])

        key = env.get("BOT_PRIVATE_KEY", "").strip()

        return cls(
            contract_address=Web3.to_checksum_address(address),
            endpoints=endpoints,
            catalog_path=Path(env.get("RIDDLES_PATH", str(DEFAULT_RIDDLES))),
            publisher_key=format_private_key(key) if key else None,
            chain_id=int(_parse_number("CHAIN_ID", env.get("CHAIN_ID", str(SEPOLIA_CHAIN_ID)), int)),
            settlement_timeout=_parse_number(
                "SETTLEMENT_TIMEOUT", env.get("SETTLEMENT_TIMEOUT", "120"), float,
            ),
            history_from_block=int(
                _parse_number("HISTORY_FROM_BLOCK", env.get("HISTORY_FROM_BLOCK", "0"), int)
            ),
            check_authorization=_parse_bool(
                "CHECK_AUTHORIZATION", env.get("CHECK_AUTHORIZATION", "true"),
            ),
            rpc_timeout=_parse_number("RPC_TIMEOUT", env.get("RPC_TIMEOUT", "10"), float),
        )

    def load_catalog(self) -> PuzzleCatalog:
        return PuzzleCatalog.from_file(self.catalog_path)

    def require_publisher_key(self) -> str:
        if not self.publisher_key:
            raise ConfigurationError("Missing BOT_PRIVATE_KEY environment variable")
        return self.publisher_key
