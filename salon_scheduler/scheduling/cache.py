"""
Read-through cache of per-day availability inputs.

One entry per (provider_id, date) holding the template, leave and booking
rows the resolver needs. Entries expire after an explicit TTL and are
invalidated by the admission controller on every write that touches the
key. The cache is owned by an engine instance; there is no module-level
cache object.
"""

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from salon_scheduler.schemas.booking_schema import Booking
from salon_scheduler.schemas.leave_schema import Leave
from salon_scheduler.stores.leaves import dominant_leave

logger = logging.getLogger(__name__)

CacheKey = tuple[str, date]


@dataclass(frozen=True)
class DaySnapshot:
    """Store state for one provider on one date, read together."""

    provider_id: str
    day: date
    template: tuple[str, ...]
    leaves: tuple[Leave, ...] = ()
    bookings: tuple[Booking, ...] = ()

    @property
    def leave(self) -> Optional[Leave]:
        return dominant_leave(list(self.leaves))


@dataclass
class _Entry:
    snapshot: DaySnapshot
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    expirations: int = 0
    stale_fills: int = 0


class AvailabilityCache:
    """TTL cache of DaySnapshots keyed by (provider_id, date).

    A read-through fill registers itself with ``begin_fill`` before reading
    the stores. Invalidating the key voids every fill in flight for it, and
    ``set`` drops a snapshot whose fill was voided, so a load that raced a
    write can never put pre-write state back into the cache.
    """

    def __init__(self, ttl_sec: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_sec < 0:
            raise ValueError(f"ttl_sec must be >= 0, got {ttl_sec}")
        self._ttl = ttl_sec
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        self._fills: dict[CacheKey, set[int]] = {}
        self._fill_ids = itertools.count(1)
        self._lock = threading.Lock()
        self.stats = CacheStats()

    @property
    def ttl_sec(self) -> float:
        return self._ttl

    def get(self, provider_id: str, day: date) -> Optional[DaySnapshot]:
        key = (provider_id, day)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                logger.debug("Cache MISS: %s %s", provider_id, day)
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self.stats.expirations += 1
                self.stats.misses += 1
                logger.debug("Cache EXPIRED: %s %s", provider_id, day)
                return None
            self.stats.hits += 1
            return entry.snapshot

    def begin_fill(self, provider_id: str, day: date) -> int:
        """Register a store read for a key; pass the returned id to ``set``."""
        with self._lock:
            fill = next(self._fill_ids)
            self._fills.setdefault((provider_id, day), set()).add(fill)
        return fill

    def end_fill(self, provider_id: str, day: date, fill: int) -> None:
        key = (provider_id, day)
        with self._lock:
            fills = self._fills.get(key)
            if fills is not None:
                fills.discard(fill)
                if not fills:
                    del self._fills[key]

    def set(self, snapshot: DaySnapshot, fill: Optional[int] = None) -> bool:
        """Store a snapshot. Returns False if it was dropped.

        With ``fill`` given, the snapshot is dropped when the key was
        invalidated after ``begin_fill``.
        """
        if self._ttl == 0:
            return False
        key = (snapshot.provider_id, snapshot.day)
        with self._lock:
            if fill is not None and fill not in self._fills.get(key, ()):
                self.stats.stale_fills += 1
                logger.debug("Cache STALE FILL dropped: %s %s", snapshot.provider_id, snapshot.day)
                return False
            self._entries[key] = _Entry(snapshot=snapshot, expires_at=self._clock() + self._ttl)
        return True

    def invalidate(self, provider_id: str, day: date) -> bool:
        """Drop one key and void its fills in flight. Returns True if an entry was present."""
        key = (provider_id, day)
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            self._fills.pop(key, None)
            self.stats.invalidations += 1
        if removed:
            logger.debug("Cache INVALIDATE: %s %s", provider_id, day)
        return removed

    def invalidate_provider(self, provider_id: str) -> int:
        """Drop every cached day for a provider (template or leave edits)."""
        with self._lock:
            keys = [key for key in self._entries if key[0] == provider_id]
            for key in keys:
                del self._entries[key]
            for key in [key for key in self._fills if key[0] == provider_id]:
                del self._fills[key]
            self.stats.invalidations += len(keys)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._fills.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
