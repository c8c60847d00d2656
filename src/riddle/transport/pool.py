"""Endpoint pool — the ordered list of interchangeable RPC endpoints.

Loaded once at process start and immutable afterwards. An empty or
malformed list is a configuration error, raised before any call is made.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator
from urllib.parse import urlparse

from riddle.errors import ConfigurationError


_SCHEMES = ("http", "https", "ws", "wss")


class EndpointPool:
    """Fixed preference order of endpoints. Duplicates keep their first slot."""

    def __init__(self, endpoints: Iterable[str]) -> None:
        ordered: list[str] = []
        for raw in endpoints:
            if not isinstance(raw, str) or not raw.strip():
                raise ConfigurationError(f"Malformed endpoint: {raw!r}")
            url = raw.strip()
            parsed = urlparse(url)
            if parsed.scheme not in _SCHEMES or not parsed.netloc:
                raise ConfigurationError(f"Malformed endpoint URL: {url!r}")
            if url not in ordered:
                ordered.append(url)
        if not ordered:
            raise ConfigurationError("Endpoint pool is empty")
        self._endpoints: tuple[str, ...] = tuple(ordered)

    @classmethod
    def from_file(cls, path: Path) -> EndpointPool:
        """Load a JSON array of endpoint URLs (rpc-list.json)."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read endpoint list {path}: {e}") from e
        if not isinstance(data, list):
            raise ConfigurationError(f"Endpoint list {path} must be a JSON array")
        return cls(data)

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    def __iter__(self) -> Iterator[str]:
        return iter(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def __repr__(self) -> str:
        return f"EndpointPool({list(self._endpoints)!r})"
