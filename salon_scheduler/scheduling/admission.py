"""
Booking admission: re-validate against the resolver, then commit.

The controller owns the one write-after-read hazard in the system. Every
write that claims time (create, edit, reschedule) runs under a lock per
(provider_id, date), re-evaluates the day from the stores (never from the
cache, never trusting an earlier client-side check) and only then writes.
Under N concurrent requests for the same slot exactly one succeeds and the
rest get SlotNoLongerAvailableError.
"""

import math
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from salon_scheduler.config import SchedulingConfig, settings
from salon_scheduler.errors import (
    InvalidBookingRequestError,
    InvalidStateTransitionError,
    SlotNoLongerAvailableError,
)
from salon_scheduler.logging_context import get_request_logger
from salon_scheduler.scheduling.cache import AvailabilityCache
from salon_scheduler.scheduling.resolver import AvailabilityResolver, DateLike
from salon_scheduler.scheduling.state_machine import BookingStateMachine, BookingTrigger
from salon_scheduler.schemas.booking_schema import (
    BookedService,
    Booking,
    BookingPage,
    BookingStatus,
    StatusChange,
)
from salon_scheduler.stores.bookings import BookingStore, first_overlapping
from salon_scheduler.time_model import (
    MINUTES_PER_DAY,
    format_time,
    normalize_time,
    parse_date,
    slots_overlap,
)
from salon_scheduler.utils import calculate_total_duration, calculate_total_price

logger = get_request_logger(__name__)

DayKey = tuple[str, date]
ServiceLike = Union[BookedService, Mapping[str, Any]]

EDITABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def new_booking_id() -> str:
    return f"BK-{uuid.uuid4().hex[:8].upper()}"


def paginate(bookings: list[Booking], page: int, limit: int) -> BookingPage:
    """Slice an ordered listing into a 1-based page.

    >>> paginate([], page=1, limit=10).pages
    0
    """
    if page < 1:
        raise InvalidBookingRequestError(f"page must be >= 1, got {page}")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidBookingRequestError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
    offset = (page - 1) * limit
    return BookingPage(
        bookings=bookings[offset:offset + limit],
        total=len(bookings),
        page=page,
        limit=limit,
        pages=math.ceil(len(bookings) / limit),
    )


def _end_label(start: int, duration: int) -> str:
    end = start + duration
    return "24:00" if end == MINUTES_PER_DAY else format_time(end, twelve_hour=False)


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class DayLocks:
    """One lock per (provider_id, date); multiple keys are taken in sorted order.

    Entries are reference-counted and dropped once no thread holds or waits
    on them, so only days currently being written keep a lock around.
    """

    def __init__(self) -> None:
        self._entries: dict[DayKey, _LockEntry] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: DayKey) -> _LockEntry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.users += 1
            return entry

    def _checkin(self, key: DayKey, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: DayKey) -> Iterator[None]:
        ordered = sorted(set(keys))
        acquired: list[tuple[DayKey, _LockEntry]] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                entry.lock.acquire()
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)


def _coerce_services(services: Optional[Iterable[ServiceLike]]) -> list[BookedService]:
    coerced = []
    for service in services or []:
        if isinstance(service, BookedService):
            coerced.append(service)
        else:
            try:
                coerced.append(BookedService(**service))
            except (TypeError, ValueError) as exc:
                raise InvalidBookingRequestError(f"Invalid service entry: {exc}") from exc
    return coerced


class BookingAdmissionController:
    """Validates booking writes against live availability and commits them atomically."""

    def __init__(
        self,
        resolver: AvailabilityResolver,
        bookings: BookingStore,
        cache: Optional[AvailabilityCache] = None,
        clock: Callable[[], datetime] = datetime.now,
        config: SchedulingConfig = settings.scheduling,
        id_factory: Callable[[], str] = new_booking_id,
    ) -> None:
        self._resolver = resolver
        self._bookings = bookings
        self._cache = cache
        self._clock = clock
        self._config = config
        self._new_id = id_factory
        self._locks = DayLocks()

    # ------------------------------------------------------------------ #
    # Shared validation
    # ------------------------------------------------------------------ #

    def _resolve_duration(
        self, duration: Optional[int], services: list[BookedService]
    ) -> int:
        if duration is None:
            duration = calculate_total_duration(services) or self._config.default_service_minutes
        if not isinstance(duration, int) or isinstance(duration, bool) or duration < 1:
            raise InvalidBookingRequestError(f"Duration must be a positive number of minutes, got {duration!r}")
        return duration

    @staticmethod
    def _check_fits_day(start: int, duration: int) -> None:
        if start + duration > MINUTES_PER_DAY:
            raise InvalidBookingRequestError(
                f"Booking starting at {format_time(start)} for {duration} minutes runs past midnight"
            )

    def _ensure_admissible(
        self,
        provider_id: str,
        day: date,
        start: int,
        duration: int,
        now: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """Raise SlotNoLongerAvailableError unless [start, start+duration) is entirely free."""
        evaluation = self._resolver.evaluate_day(
            provider_id, day, now=now, fresh=True, exclude_booking_id=exclude_booking_id
        )
        free = evaluation.available_starts
        label = format_time(start)
        details = {"provider_id": provider_id, "date": day.isoformat(), "start_time": label}

        if start not in free:
            raise SlotNoLongerAvailableError(
                f"The {label} slot on {day.isoformat()} is no longer available.", details=details
            )

        # Every slot the booking spills into must be free as well.
        for slot_start in range(start, start + duration, self._resolver.slot_minutes):
            if slot_start not in free:
                raise SlotNoLongerAvailableError(
                    f"A {duration}-minute booking at {label} runs into the unavailable "
                    f"{format_time(slot_start)} slot.",
                    details=details,
                )

        others = [b for b in evaluation.snapshot.bookings if b.booking_id != exclude_booking_id]
        clash = first_overlapping(others, start, duration)
        if clash is not None:
            raise SlotNoLongerAvailableError(
                f"A {duration}-minute booking at {label} overlaps an existing booking.",
                details=details,
            )
        for leave in evaluation.partial_leaves:
            if slots_overlap(start, duration, leave.start_minutes, leave.end_minutes - leave.start_minutes):
                raise SlotNoLongerAvailableError(
                    f"A {duration}-minute booking at {label} overlaps leave "
                    f"{leave.start_time} - {leave.end_time}.",
                    details=details,
                )

    @contextmanager
    def _locked_booking(self, booking_id: str, *target_days: date) -> Iterator[Booking]:
        """Yield a fresh copy of the booking with its current day (and targets) locked.

        The booking's day is read before locking, so a concurrent write may
        move it in between; in that case the locks are dropped and retaken
        for the day it actually lives on now.
        """
        while True:
            current = self._bookings.get(booking_id)
            home = (current.provider_id, current.date)
            keys = [home] + [(current.provider_id, day) for day in target_days]
            with self._locks.hold(*keys):
                booking = self._bookings.get(booking_id)
                if (booking.provider_id, booking.date) == home:
                    yield booking
                    return
            logger.debug("Booking %s moved to %s before it was locked, retrying", booking_id, booking.date)

    def _invalidate(self, *keys: DayKey) -> None:
        if self._cache is None:
            return
        for provider_id, day in set(keys):
            self._cache.invalidate(provider_id, day)

    # ------------------------------------------------------------------ #
    # Admission
    # ------------------------------------------------------------------ #

    def create_booking(
        self,
        provider_id: str,
        day: DateLike,
        requested_start: str,
        duration: Optional[int] = None,
        services: Optional[Iterable[ServiceLike]] = None,
        customer_id: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Admit a new pending booking or raise SlotNoLongerAvailableError.

        ``duration`` defaults to the sum of the service durations, then to
        the configured default service length.
        """
        start = normalize_time(requested_start)
        day = parse_date(day)
        booked_services = _coerce_services(services)
        duration = self._resolve_duration(duration, booked_services)
        self._check_fits_day(start, duration)

        provider = self._resolver.get_provider(provider_id)
        key = (provider_id, day)

        with self._locks.hold(key):
            now = now or self._clock()
            try:
                self._ensure_admissible(provider_id, day, start, duration, now)
            except SlotNoLongerAvailableError as exc:
                logger.info("Booking rejected for %s on %s: %s", provider_id, day, exc.message)
                raise

            booking = Booking(
                booking_id=self._new_id(),
                provider_id=provider_id,
                customer_id=customer_id,
                salon_id=provider.salon_id,
                date=day,
                start_time=format_time(start, twelve_hour=False),
                end_time=_end_label(start, duration),
                duration=duration,
                services=booked_services,
                total_price=calculate_total_price(booked_services),
                notes=notes,
                created_at=now,
                updated_at=now,
                history=[StatusChange(status=BookingStatus.PENDING, changed_at=now, actor=customer_id)],
            )
            self._bookings.add(booking)

        self._invalidate(key)
        logger.info(
            "Booking created: %s for %s on %s at %s (%d min)",
            booking.booking_id, provider_id, day, booking.start_time, duration,
        )
        return booking

    def update_booking(
        self,
        booking_id: str,
        day: Optional[DateLike] = None,
        start_time: Optional[str] = None,
        duration: Optional[int] = None,
        services: Optional[Iterable[ServiceLike]] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Edit a pending/confirmed booking in place, re-validating like a new booking.

        The booking's own current slot does not count as a conflict.
        """
        new_start = normalize_time(start_time) if start_time is not None else None
        new_day = parse_date(day) if day is not None else None
        new_services = _coerce_services(services) if services is not None else None

        targets = [new_day] if new_day is not None else []
        with self._locked_booking(booking_id, *targets) as booking:
            old_key = (booking.provider_id, booking.date)
            if booking.status not in EDITABLE_STATUSES:
                raise InvalidStateTransitionError(
                    f"Cannot edit booking {booking_id} in status '{booking.status.value}'.",
                    details={"status": booking.status.value},
                )

            services_after = new_services if new_services is not None else booking.services
            if duration is not None:
                duration_after = self._resolve_duration(duration, services_after)
            elif new_services is not None:
                duration_after = self._resolve_duration(None, services_after)
            else:
                duration_after = booking.duration
            start_after = new_start if new_start is not None else booking.start_minutes
            day_after = new_day or booking.date
            self._check_fits_day(start_after, duration_after)

            claims_time = any(v is not None for v in (day, start_time, duration, services))
            now = now or self._clock()
            if claims_time:
                try:
                    self._ensure_admissible(
                        booking.provider_id, day_after, start_after, duration_after, now,
                        exclude_booking_id=booking_id,
                    )
                except SlotNoLongerAvailableError as exc:
                    logger.info("Update of %s rejected: %s", booking_id, exc.message)
                    raise

            booking.date = day_after
            booking.start_time = format_time(start_after, twelve_hour=False)
            booking.duration = duration_after
            booking.end_time = _end_label(start_after, duration_after)
            booking.services = services_after
            booking.total_price = calculate_total_price(services_after)
            if notes is not None:
                booking.notes = notes
            booking.updated_at = now
            self._bookings.save(booking)

        self._invalidate(old_key, (booking.provider_id, booking.date))
        logger.info("Booking updated: %s by %s", booking_id, actor or "unknown")
        return booking

    def reschedule_booking(
        self,
        booking_id: str,
        new_day: DateLike,
        new_start: str,
        actor: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Atomically replace a booking with a new pending one at another time.

        The old booking moves to ``rescheduled`` (releasing its time) and the
        two are linked through ``rescheduled_to`` / ``rescheduled_from``.
        """
        start = normalize_time(new_start)
        day = parse_date(new_day)

        with self._locked_booking(booking_id, day) as old:
            old_key = (old.provider_id, old.date)
            new_key = (old.provider_id, day)
            machine = BookingStateMachine(old, clock=self._clock)
            if not machine.can(BookingTrigger.RESCHEDULE):
                # Raises with the list of valid triggers.
                machine.transition(BookingTrigger.RESCHEDULE, actor=actor)

            self._check_fits_day(start, old.duration)
            now = now or self._clock()
            try:
                self._ensure_admissible(
                    old.provider_id, day, start, old.duration, now, exclude_booking_id=booking_id
                )
            except SlotNoLongerAvailableError as exc:
                logger.info("Reschedule of %s rejected: %s", booking_id, exc.message)
                raise

            replacement = old.model_copy(deep=True, update={
                "booking_id": self._new_id(),
                "date": day,
                "start_time": format_time(start, twelve_hour=False),
                "end_time": _end_label(start, old.duration),
                "status": BookingStatus.PENDING,
                "created_at": now,
                "updated_at": now,
                "cancellation_reason": None,
                "rescheduled_from": booking_id,
                "rescheduled_to": None,
                "history": [StatusChange(
                    status=BookingStatus.PENDING, changed_at=now, actor=actor,
                    note=f"rescheduled from {booking_id}",
                )],
            })

            machine.transition(
                BookingTrigger.RESCHEDULE, actor=actor,
                note=f"rescheduled to {replacement.booking_id}",
            )
            old.rescheduled_to = replacement.booking_id
            self._bookings.add(replacement)
            self._bookings.save(old)

        self._invalidate(old_key, new_key)
        logger.info(
            "Booking rescheduled: %s -> %s on %s at %s",
            booking_id, replacement.booking_id, day, replacement.start_time,
        )
        return replacement

    # ------------------------------------------------------------------ #
    # Status transitions that release or keep time
    # ------------------------------------------------------------------ #

    def _apply(
        self,
        booking_id: str,
        trigger: BookingTrigger,
        actor: Optional[str],
        note: Optional[str] = None,
    ) -> Booking:
        with self._locked_booking(booking_id) as booking:
            key = (booking.provider_id, booking.date)
            try:
                BookingStateMachine(booking, clock=self._clock).transition(
                    trigger, actor=actor, note=note
                )
            except InvalidStateTransitionError as exc:
                logger.info("Transition rejected for %s: %s", booking_id, exc.message)
                raise
            if trigger == BookingTrigger.CANCEL:
                booking.cancellation_reason = note or "No reason provided"
            self._bookings.save(booking)
        self._invalidate(key)
        logger.info("Booking %s is now %s", booking_id, booking.status.value)
        return booking

    def cancel_booking(
        self, booking_id: str, actor: Optional[str] = None, reason: Optional[str] = None
    ) -> Booking:
        """pending|confirmed -> cancelled; the booking's time becomes free again."""
        return self._apply(booking_id, BookingTrigger.CANCEL, actor, reason)

    def confirm_booking(self, booking_id: str, actor: Optional[str] = None) -> Booking:
        return self._apply(booking_id, BookingTrigger.CONFIRM, actor)

    def complete_booking(self, booking_id: str, actor: Optional[str] = None) -> Booking:
        return self._apply(booking_id, BookingTrigger.COMPLETE, actor)

    def mark_no_show(self, booking_id: str, actor: Optional[str] = None) -> Booking:
        return self._apply(booking_id, BookingTrigger.MARK_NO_SHOW, actor)

    def get_booking(self, booking_id: str) -> Booking:
        return self._bookings.get(booking_id)

    # ------------------------------------------------------------------ #
    # Listings
    # ------------------------------------------------------------------ #

    def list_customer_bookings(
        self,
        customer_id: str,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> BookingPage:
        """A customer's bookings, newest first, optionally filtered by status."""
        bookings = self._bookings.bookings_for_customer(customer_id)
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        bookings.sort(key=lambda b: (b.date, b.start_minutes), reverse=True)
        return paginate(bookings, page, limit)

    def list_salon_bookings(
        self,
        salon_id: str,
        status: Optional[BookingStatus] = None,
        day: Optional[DateLike] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> BookingPage:
        """A salon's bookings by date and start time, optionally for one status or date.

        Raises:
            NotFoundError: If the salon is unknown.
        """
        self._resolver.get_salon(salon_id)
        on_day = parse_date(day) if day is not None else None
        bookings = [
            b for b in self._bookings.bookings_for_salon(salon_id)
            if (status is None or b.status == status) and (on_day is None or b.date == on_day)
        ]
        return paginate(bookings, page, limit)
