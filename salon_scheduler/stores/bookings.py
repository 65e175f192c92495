"""
Booking Store: persisted bookings keyed by provider and date.

Bookings are never deleted; cancellation and rescheduling are status
changes. Reads hand out copies so callers cannot mutate stored state
without going through ``save``.
"""

import logging
import threading
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Protocol

from salon_scheduler.errors import NotFoundError
from salon_scheduler.time_model import slots_overlap
from salon_scheduler.schemas.booking_schema import Booking

logger = logging.getLogger(__name__)


class BookingStore(Protocol):
    def bookings_for(self, provider_id: str, day: date) -> list[Booking]:
        ...

    def get(self, booking_id: str) -> Booking:
        ...

    def add(self, booking: Booking) -> Booking:
        ...

    def save(self, booking: Booking) -> Booking:
        ...

    def bookings_for_customer(self, customer_id: str) -> list[Booking]:
        ...

    def bookings_for_salon(self, salon_id: str) -> list[Booking]:
        ...


def first_overlapping(
    bookings: Iterable[Booking], slot_start: int, slot_duration: int
) -> Optional[Booking]:
    """First booking whose [start, start+duration) intersects the slot, if any."""
    for booking in bookings:
        if slots_overlap(slot_start, slot_duration, booking.start_minutes, booking.duration):
            return booking
    return None


def is_slot_booked(bookings: Iterable[Booking], slot_start: int, slot_duration: int) -> bool:
    return first_overlapping(bookings, slot_start, slot_duration) is not None


class InMemoryBookingStore:
    """Dict-backed booking store with a (provider_id, date) index."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._by_day: dict[tuple[str, date], list[str]] = defaultdict(list)
        self._lock = threading.Lock()

    def bookings_for(self, provider_id: str, day: date) -> list[Booking]:
        """Bookings that still occupy time for a provider on ``day``, by start time."""
        with self._lock:
            found = [
                self._bookings[booking_id].model_copy(deep=True)
                for booking_id in self._by_day.get((provider_id, day), [])
                if self._bookings[booking_id].occupies_time
            ]
        return sorted(found, key=lambda b: b.start_minutes)

    def get(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise NotFoundError(f"Booking {booking_id} not found.")
            return booking.model_copy(deep=True)

    def add(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.booking_id in self._bookings:
                raise ValueError(f"Booking {booking.booking_id} already exists")
            self._bookings[booking.booking_id] = booking.model_copy(deep=True)
            self._by_day[(booking.provider_id, booking.date)].append(booking.booking_id)
        logger.debug("Booking stored: %s", booking.booking_id)
        return booking

    def save(self, booking: Booking) -> Booking:
        """Persist changes to an existing booking, re-indexing if its date moved."""
        with self._lock:
            previous = self._bookings.get(booking.booking_id)
            if previous is None:
                raise NotFoundError(f"Booking {booking.booking_id} not found.")
            old_key = (previous.provider_id, previous.date)
            new_key = (booking.provider_id, booking.date)
            if old_key != new_key:
                self._by_day[old_key].remove(booking.booking_id)
                self._by_day[new_key].append(booking.booking_id)
            self._bookings[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    def bookings_for_customer(self, customer_id: str) -> list[Booking]:
        """Every booking of a customer, whatever its status, by date and start time."""
        with self._lock:
            found = [
                b.model_copy(deep=True) for b in self._bookings.values() if b.customer_id == customer_id
            ]
        return sorted(found, key=lambda b: (b.date, b.start_minutes))

    def bookings_for_salon(self, salon_id: str) -> list[Booking]:
        """Every booking taken at a salon, whatever its status, by date and start time."""
        with self._lock:
            found = [
                b.model_copy(deep=True) for b in self._bookings.values() if b.salon_id == salon_id
            ]
        return sorted(found, key=lambda b: (b.date, b.start_minutes))

    def all_bookings(self) -> list[Booking]:
        with self._lock:
            return [b.model_copy(deep=True) for b in self._bookings.values()]

    def clear(self) -> None:
        with self._lock:
            self._bookings.clear()
            self._by_day.clear()
