"""Puzzle catalog — the fixed, ordered sequence of riddles.

Each entry pairs a question with the precomputed commitment (bytes32
hash) of its answer. Entries are identified by position. The catalog
never reduces an index modulo its length; that policy lives with the
rotation decision so it stays visible where it is applied.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from riddle.errors import ConfigurationError


COMMITMENT_BYTES = 32


@dataclass(frozen=True)
class PuzzleEntry:
    """One catalog riddle and the commitment of its answer."""
    question: str
    answer_hash: bytes

    @property
    def answer_hash_hex(self) -> str:
        return "0x" + self.answer_hash.hex()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PuzzleEntry:
        """Build from a riddles.json record: {"question", "answerHash"}."""
        question = data.get("question")
        if not isinstance(question, str) or not question.strip():
            raise ConfigurationError(f"Catalog entry has no question: {data!r}")
        raw = data.get("answerHash")
        if not isinstance(raw, str):
            raise ConfigurationError(f"Catalog entry has no answerHash: {question!r}")
        digits = raw[2:] if raw.lower().startswith("0x") else raw
        try:
            commitment = bytes.fromhex(digits)
        except ValueError as e:
            raise ConfigurationError(f"answerHash is not hex for {question!r}") from e
        if len(commitment) != COMMITMENT_BYTES:
            raise ConfigurationError(
                f"answerHash for {question!r} must be {COMMITMENT_BYTES} bytes, "
                f"got {len(commitment)}"
            )
        return cls(question=question, answer_hash=commitment)


class PuzzleCatalog:
    """Immutable ordered catalog.

    An empty catalog is accepted here so the decision engine can report
    it; ``from_file`` rejects it at startup.
    """

    def __init__(self, entries: Iterable[PuzzleEntry]) -> None:
        self._entries: tuple[PuzzleEntry, ...] = tuple(entries)

    @classmethod
    def from_file(cls, path: Path) -> PuzzleCatalog:
        """Load riddles.json. Empty or malformed catalogs fail fast."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read puzzle catalog {path}: {e}") from e
        if not isinstance(data, list):
            raise ConfigurationError(f"Puzzle catalog {path} must be a JSON array")
        catalog = cls(PuzzleEntry.from_dict(item) for item in data)
        if len(catalog) == 0:
            raise ConfigurationError(f"Puzzle catalog {path} is empty")
        return catalog

    def get(self, index: int) -> PuzzleEntry:
        """Entry at ``index``. Raises IndexError outside [0, len)."""
        if index < 0 or index >= len(self._entries):
            raise IndexError(f"Catalog index {index} out of range (length {len(self._entries)})")
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def length(self) -> int:
        return len(self._entries)
