"""
Pending set: transactions seen on the feed but not yet resolved.

Owned by one mempool session and mutated only from its coordination loop.
Resolved and abandoned hashes are retired into a bounded FIFO memory so a
late push cannot resurrect them.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Iterator

from mempool_sentinel.mempool.models import PendingEntry

DEFAULT_RETIRED_CAPACITY = 50_000


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class PendingSet:
    """
    Mapping tx_hash -> PendingEntry in insertion order.

    snapshot() returns a list, so a tick iterates a stable order even if
    pushes are ingested afterwards.
    """

    def __init__(
        self,
        *,
        max_age_ms: int | None = None,
        retired_capacity: int = DEFAULT_RETIRED_CAPACITY,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        if max_age_ms is not None and max_age_ms <= 0:
            raise ValueError("max_age_ms must be positive or None")
        if retired_capacity < 1:
            raise ValueError("retired_capacity must be >= 1")
        self._entries: dict[str, PendingEntry] = {}
        self._max_age_ms = max_age_ms
        self._clock = clock
        # set for O(1) lookup + deque for FIFO eviction when over capacity
        self._retired: set[str] = set()
        self._retired_order: deque[str] = deque()
        self._retired_capacity = retired_capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tx_hash: object) -> bool:
        return tx_hash in self._entries

    def __iter__(self) -> Iterator[PendingEntry]:
        return iter(list(self._entries.values()))

    @property
    def max_age_ms(self) -> int | None:
        return self._max_age_ms

    def now_ms(self) -> int:
        return self._clock()

    def get(self, tx_hash: str) -> PendingEntry | None:
        return self._entries.get(tx_hash)

    def is_retired(self, tx_hash: str) -> bool:
        return tx_hash in self._retired

    def add(self, tx_hash: str, now_ms: int | None = None) -> bool:
        """Track a newly pushed hash. Returns False if already tracked or retired."""
        if tx_hash in self._entries or tx_hash in self._retired:
            return False
        seen_at = self._clock() if now_ms is None else now_ms
        self._entries[tx_hash] = PendingEntry(tx_hash=tx_hash, first_seen_at_ms=seen_at)
        return True

    def snapshot(self) -> list[PendingEntry]:
        return list(self._entries.values())

    def resolve(self, tx_hash: str) -> PendingEntry | None:
        """Remove a resolved hash and retire it. Returns the entry, or None if not tracked."""
        entry = self._entries.pop(tx_hash, None)
        if entry is not None:
            self._retire(tx_hash)
        return entry

    def evict_expired(self, now_ms: int | None = None) -> list[PendingEntry]:
        """Abandon entries older than max_age_ms; returns them oldest first."""
        if self._max_age_ms is None:
            return []
        now = self._clock() if now_ms is None else now_ms
        expired = [e for e in self._entries.values() if e.age_ms(now) > self._max_age_ms]
        for entry in expired:
            del self._entries[entry.tx_hash]
            self._retire(entry.tx_hash)
        return expired

    def _retire(self, tx_hash: str) -> None:
        if tx_hash in self._retired:
            return
        if len(self._retired) >= self._retired_capacity:
            oldest = self._retired_order.popleft()
            self._retired.discard(oldest)
        self._retired.add(tx_hash)
        self._retired_order.append(tx_hash)
