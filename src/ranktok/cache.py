"""Memoization of merge results per pre-tokenized chunk."""

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .types import Token

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time counters for a piece cache."""

    hits: int
    misses: int
    size: int


class PieceCache:
    """
    Insert-only map from chunk bytes to the token ids they merge into.

    Entries are stored as tuples and never change once written, so lookups
    hand out shared immutable views. Lookups are lock-free; inserts take a lock
    so one cache can back encoders running on several threads. Two threads
    missing on the same chunk may both compute it; the second write is dropped
    since the value is identical.

    When ``max_entries`` is reached new results are still returned to the
    caller but no longer stored. Nothing is ever evicted.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries: int | None = max_entries
        self._entries: dict[bytes, tuple[Token, ...]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._full_logged = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, piece: bytes) -> bool:
        return piece in self._entries

    def get(self, piece: bytes) -> tuple[Token, ...] | None:
        """Return the cached ids for ``piece`` or ``None``."""
        ids = self._entries.get(piece)
        # counters are advisory; unsynchronized increments may drop a count
        if ids is None:
            self._misses += 1
        else:
            self._hits += 1
        return ids

    def put(self, piece: bytes, ids: Sequence[Token]) -> tuple[Token, ...]:
        """Insert ``ids`` for ``piece`` unless present; return the stored (or given) tuple."""
        value = tuple(ids)
        with self._lock:
            existing = self._entries.get(piece)
            if existing is not None:
                return existing
            if self.max_entries is not None and len(self._entries) >= self.max_entries:
                if not self._full_logged:
                    log.debug(f"piece cache full at {self.max_entries} entries")
                    self._full_logged = True
                return value
            self._entries[piece] = value
        return value

    def get_or_compute(
        self, piece: bytes, compute: Callable[[bytes], Sequence[Token]]
    ) -> tuple[Token, ...]:
        """Return cached ids for ``piece``, computing and storing them on a miss."""
        ids = self.get(piece)
        if ids is not None:
            return ids
        return self.put(piece, compute(piece))

    @property
    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    def clear(self) -> None:
        """Drop all entries and counters (benchmarks and tests only)."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._full_logged = False


__all__ = ["CacheStats", "PieceCache"]
