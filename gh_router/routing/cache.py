"""Resolution cache for route plans.

Memoizes the selector's decision, never remote data. Entries expire after a
TTL and the oldest entry is evicted once ``max_entries`` is reached. Inserts
are insert-if-absent: the first plan stored under a key wins.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, Optional, Tuple

if TYPE_CHECKING:
    from .selector import RoutePlan

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 200


class ResolutionCache:
    """In-memory TTL/FIFO cache of ``RoutePlan`` objects.

    Attributes:
        ttl_seconds: Lifetime of one entry.
        max_entries: Capacity; expired entries are swept before FIFO eviction.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._store: Dict[Hashable, Tuple["RoutePlan", float]] = {}
        self.hits = 0
        self.misses = 0

    def _live(self, key: Hashable) -> Optional["RoutePlan"]:
        entry = self._store.get(key)
        if entry is None:
            return None
        plan, expires_at = entry
        if self._clock() > expires_at:
            self._store.pop(key, None)
            return None
        return plan

    def get(self, key: Hashable) -> Optional["RoutePlan"]:
        plan = self._live(key)
        if plan is None:
            self.misses += 1
        else:
            self.hits += 1
        return plan

    def put_if_absent(self, key: Hashable, plan: "RoutePlan") -> "RoutePlan":
        """Store ``plan`` unless a live entry exists; return the stored plan."""
        existing = self._live(key)
        if existing is not None:
            return existing
        if len(self._store) >= self.max_entries:
            self._evict()
        stored, _ = self._store.setdefault(key, (plan, self._clock() + self.ttl_seconds))
        return stored

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, (_, expires_at) in self._store.items() if now > expires_at]:
            self._store.pop(key, None)
        if len(self._store) >= self.max_entries:
            oldest = next(iter(self._store), None)
            if oldest is not None:
                self._store.pop(oldest, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


def build_cache_key(capability_id: str, fingerprint: Tuple[Any, ...], presence: Tuple[bool, ...]) -> Hashable:
    return (capability_id, fingerprint, presence)
