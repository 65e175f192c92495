"""
Leave Store: per-provider full-day and partial-day leave records.

Cancelling a leave is a soft delete; the record is kept with
``active=False`` and stops matching lookups.
"""

import logging
import threading
from datetime import date
from typing import Optional, Protocol

from salon_scheduler.errors import NotFoundError
from salon_scheduler.schemas.leave_schema import FullDayLeave, Leave, PartialDayLeave

logger = logging.getLogger(__name__)


class LeaveStore(Protocol):
    def leaves_for(self, provider_id: str, day: date) -> list[Leave]:
        ...

    def leave_for(self, provider_id: str, day: date) -> Optional[Leave]:
        ...


def dominant_leave(leaves: list[Leave]) -> Optional[Leave]:
    """Pick the leave that governs a date: any full-day leave wins over partial-day ones."""
    for leave in leaves:
        if isinstance(leave, FullDayLeave):
            return leave
    partial = [leave for leave in leaves if isinstance(leave, PartialDayLeave)]
    if not partial:
        return None
    return min(partial, key=lambda leave: leave.start_minutes)


def is_slot_on_leave(leave: Optional[Leave], day: date, slot_start: int) -> bool:
    """Apply the variant rule for a single slot start (minutes since midnight)."""
    if leave is None or not leave.active or not leave.covers(day):
        return False
    if isinstance(leave, FullDayLeave):
        return True
    return leave.start_minutes <= slot_start < leave.end_minutes


class InMemoryLeaveStore:
    """List-backed leave store."""

    def __init__(self) -> None:
        self._leaves: dict[str, Leave] = {}
        self._lock = threading.Lock()

    def add_leave(self, leave: Leave) -> Leave:
        with self._lock:
            self._leaves[leave.leave_id] = leave
        logger.info("Leave %s recorded for provider %s (%s)", leave.leave_id, leave.provider_id, leave.type.value)
        return leave

    def cancel_leave(self, leave_id: str) -> Leave:
        with self._lock:
            leave = self._leaves.get(leave_id)
            if leave is None:
                raise NotFoundError(f"Leave {leave_id} not found.")
            leave.active = False
        logger.info("Leave %s cancelled", leave_id)
        return leave

    def leaves_for(self, provider_id: str, day: date) -> list[Leave]:
        """All active leave records for a provider covering ``day``."""
        with self._lock:
            return [
                leave.model_copy()
                for leave in self._leaves.values()
                if leave.provider_id == provider_id and leave.active and leave.covers(day)
            ]

    def leave_for(self, provider_id: str, day: date) -> Optional[Leave]:
        return dominant_leave(self.leaves_for(provider_id, day))

    def clear(self) -> None:
        with self._lock:
            self._leaves.clear()
