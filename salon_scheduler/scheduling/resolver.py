"""
Availability resolver: the single answer to "is slot S on date D free for P?"

Combines three independent sources of truth for a provider and a date:

1. the recurring weekly template (which slot starts exist at all),
2. leave records (full-day ranges block everything, partial-day windows
   block slots starting inside them),
3. bookings that still occupy time (a booking blocks every slot whose
   interval overlaps it, not just the slot with its start label).

Each public query samples "now" exactly once and holds it for the whole
computation. The resolver keeps no state of its own apart from the
optional read-through cache, so it is safe to call from any number of
threads.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Union

from salon_scheduler.config import SchedulingConfig, settings
from salon_scheduler.errors import SchedulingError, StoreUnavailableError
from salon_scheduler.scheduling.cache import AvailabilityCache, DaySnapshot
from salon_scheduler.schemas.leave_schema import FullDayLeave, PartialDayLeave
from salon_scheduler.schemas.provider_schema import (
    AvailabilityLevel,
    AvailabilityState,
    AvailabilityStatus,
    Provider,
    Salon,
    UnavailableReason,
    UnavailableReasonKind,
)
from salon_scheduler.stores.bookings import BookingStore, first_overlapping
from salon_scheduler.stores.leaves import LeaveStore, is_slot_on_leave
from salon_scheduler.stores.providers import ProviderDirectory
from salon_scheduler.stores.templates import TemplateStore
from salon_scheduler.time_model import (
    date_range,
    generate_time_slots,
    minutes_of,
    normalize_time,
    parse_date,
    weekday_of,
)

logger = logging.getLogger(__name__)

DateLike = Union[str, date, datetime]


@dataclass(frozen=True)
class SlotEvaluation:
    """One template slot and why it is not offered (reason is None when free)."""

    label: str
    start: int
    reason: Optional[UnavailableReason] = None

    @property
    def available(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class DayEvaluation:
    """Every template slot of one provider-day, evaluated against a single "now"."""

    snapshot: DaySnapshot
    now: datetime
    slots: tuple[SlotEvaluation, ...]

    @property
    def available_labels(self) -> list[str]:
        return [s.label for s in self.slots if s.available]

    @property
    def available_starts(self) -> frozenset[int]:
        return frozenset(s.start for s in self.slots if s.available)

    @property
    def full_day_leave(self) -> Optional[FullDayLeave]:
        leave = self.snapshot.leave
        return leave if isinstance(leave, FullDayLeave) else None

    @property
    def partial_leaves(self) -> list[PartialDayLeave]:
        return [leave for leave in self.snapshot.leaves if isinstance(leave, PartialDayLeave)]


class AvailabilityResolver:
    """Pure read path over the template, leave and booking stores."""

    def __init__(
        self,
        providers: ProviderDirectory,
        templates: TemplateStore,
        leaves: LeaveStore,
        bookings: BookingStore,
        cache: Optional[AvailabilityCache] = None,
        clock: Callable[[], datetime] = datetime.now,
        config: SchedulingConfig = settings.scheduling,
    ) -> None:
        self._providers = providers
        self._templates = templates
        self._leaves = leaves
        self._bookings = bookings
        self._cache = cache
        self._clock = clock
        self._config = config

    @property
    def slot_minutes(self) -> int:
        return self._config.slot_interval_minutes

    def now(self) -> datetime:
        return self._clock()

    def get_provider(self, provider_id: str) -> Provider:
        """Raises NotFoundError for an unknown provider id."""
        return self._providers.get(provider_id)

    def get_salon(self, salon_id: str) -> Salon:
        """Raises NotFoundError for an unknown salon id."""
        return self._providers.get_salon(salon_id)

    # ------------------------------------------------------------------ #
    # Store access
    # ------------------------------------------------------------------ #

    def _load_snapshot(self, provider_id: str, day: date) -> DaySnapshot:
        try:
            template = self._templates.template_for(provider_id, weekday_of(day))
            leaves = self._leaves.leaves_for(provider_id, day)
            bookings = self._bookings.bookings_for(provider_id, day)
        except SchedulingError:
            raise
        except (ConnectionError, TimeoutError, OSError) as exc:
            logger.error("Store unavailable while loading %s on %s: %s", provider_id, day, exc)
            raise StoreUnavailableError(
                f"Scheduling store unavailable: {exc}", details={"provider_id": provider_id}
            ) from exc
        return DaySnapshot(
            provider_id=provider_id,
            day=day,
            template=tuple(template),
            leaves=tuple(leaves),
            bookings=tuple(bookings),
        )

    def _snapshot(self, provider_id: str, day: date, fresh: bool = False) -> DaySnapshot:
        if self._cache is None or fresh:
            return self._load_snapshot(provider_id, day)
        cached = self._cache.get(provider_id, day)
        if cached is not None:
            return cached
        fill = self._cache.begin_fill(provider_id, day)
        try:
            snapshot = self._load_snapshot(provider_id, day)
            self._cache.set(snapshot, fill=fill)
        finally:
            self._cache.end_fill(provider_id, day, fill)
        return snapshot

    # ------------------------------------------------------------------ #
    # Slot classification
    # ------------------------------------------------------------------ #

    @staticmethod
    def _is_past(day: date, slot_start: int, now: datetime) -> bool:
        today = now.date()
        if day < today:
            return True
        if day == today:
            return slot_start <= minutes_of(now)
        return False

    def _slot_reason(
        self,
        snapshot: DaySnapshot,
        slot_start: int,
        now: datetime,
        template_starts: frozenset[int],
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[UnavailableReason]:
        """Classify one slot; precedence Booked > OnLeave > Past > NotScheduled."""
        bookings = [b for b in snapshot.bookings if b.booking_id != exclude_booking_id]
        booking = first_overlapping(bookings, slot_start, self.slot_minutes)
        if booking is not None:
            return UnavailableReason(
                kind=UnavailableReasonKind.BOOKED, detail=booking.primary_service_name
            )

        for leave in snapshot.leaves:
            if is_slot_on_leave(leave, snapshot.day, slot_start):
                if isinstance(leave, PartialDayLeave):
                    detail = f"{leave.start_time} - {leave.end_time}"
                else:
                    detail = leave.reason or "Full day"
                return UnavailableReason(kind=UnavailableReasonKind.ON_LEAVE, detail=detail)

        if self._is_past(snapshot.day, slot_start, now):
            return UnavailableReason(kind=UnavailableReasonKind.PAST)

        if slot_start not in template_starts:
            return UnavailableReason(kind=UnavailableReasonKind.NOT_SCHEDULED)

        return None

    def evaluate_day(
        self,
        provider_id: str,
        day: DateLike,
        now: Optional[datetime] = None,
        fresh: bool = False,
        exclude_booking_id: Optional[str] = None,
    ) -> DayEvaluation:
        """Evaluate every template slot of a provider-day.

        Args:
            fresh: Bypass the cache and read the stores directly.
            exclude_booking_id: Ignore this booking when checking overlaps
                (used when a booking is being moved or edited).
        """
        day = parse_date(day)
        now = now or self._clock()
        self._providers.get(provider_id)
        snapshot = self._snapshot(provider_id, day, fresh=fresh)

        starts = [normalize_time(label) for label in snapshot.template]
        template_starts = frozenset(starts)
        slots = tuple(
            SlotEvaluation(
                label=label,
                start=start,
                reason=self._slot_reason(snapshot, start, now, template_starts, exclude_booking_id),
            )
            for label, start in zip(snapshot.template, starts)
        )
        return DayEvaluation(snapshot=snapshot, now=now, slots=slots)

    # ------------------------------------------------------------------ #
    # Public queries
    # ------------------------------------------------------------------ #

    def list_available_slots(
        self, provider_id: str, day: DateLike, now: Optional[datetime] = None
    ) -> list[str]:
        """Free slot labels for a provider on a date, in template (ascending) order."""
        evaluation = self.evaluate_day(provider_id, day, now=now)
        if not evaluation.snapshot.template or evaluation.full_day_leave is not None:
            return []
        return evaluation.available_labels

    def list_available_providers(
        self, salon_id: str, day: DateLike, now: Optional[datetime] = None
    ) -> set[str]:
        """Active providers of a salon with at least one free slot on the date."""
        day = parse_date(day)
        now = now or self._clock()
        available = {
            provider.provider_id
            for provider in self._providers.active_providers(salon_id)
            if self.list_available_slots(provider.provider_id, day, now=now)
        }
        logger.debug("Salon %s on %s: %d providers available", salon_id, day, len(available))
        return available

    def check_slot(
        self, provider_id: str, day: DateLike, slot_label: str, now: Optional[datetime] = None
    ) -> bool:
        """True iff ``slot_label`` is one of the provider's free slots on the date."""
        slot_start = normalize_time(slot_label)
        day = parse_date(day)
        now = now or self._clock()
        self._providers.get(provider_id)
        snapshot = self._snapshot(provider_id, day)

        template_starts = frozenset(normalize_time(label) for label in snapshot.template)
        if slot_start not in template_starts:
            return False
        if isinstance(snapshot.leave, FullDayLeave):
            return False
        return self._slot_reason(snapshot, slot_start, now, template_starts) is None

    def status_for(
        self, provider_id: str, day: DateLike, now: Optional[datetime] = None
    ) -> AvailabilityStatus:
        """Classify a provider-day as unscheduled, on leave, or by how booked it is."""
        evaluation = self.evaluate_day(provider_id, day, now=now)
        snapshot = evaluation.snapshot

        if not snapshot.template:
            return AvailabilityStatus(
                state=AvailabilityState.UNSCHEDULED,
                reason="Not scheduled to work today",
                availability_level=AvailabilityLevel.NONE,
            )

        full_day = evaluation.full_day_leave
        if full_day is not None:
            return AvailabilityStatus(
                state=AvailabilityState.ON_LEAVE,
                reason=f"On leave: {full_day.reason}" if full_day.reason else "On leave",
                availability_level=AvailabilityLevel.NONE,
            )

        total_valid = sum(
            1 for s in evaluation.slots if not self._is_past(snapshot.day, s.start, evaluation.now)
        )
        available = len(evaluation.available_labels)

        partial = evaluation.partial_leaves
        if partial:
            windows = ", ".join(f"{leave.start_time} - {leave.end_time}" for leave in partial)
            return AvailabilityStatus(
                state=AvailabilityState.PARTIAL_LEAVE,
                reason=f"Available except {windows}",
                availability_level=AvailabilityLevel.MEDIUM,
                available_count=available,
                total_valid_count=total_valid,
            )

        return _classify_by_ratio(available, total_valid)

    def unavailable_reasons(
        self, provider_id: str, day: DateLike, now: Optional[datetime] = None
    ) -> dict[str, UnavailableReason]:
        """One reason for every template slot that is not offered."""
        evaluation = self.evaluate_day(provider_id, day, now=now)
        reasons: dict[str, UnavailableReason] = {}
        for slot in evaluation.slots:
            if slot.available:
                continue
            reasons[slot.label] = slot.reason or UnavailableReason(
                kind=UnavailableReasonKind.UNAVAILABLE
            )
        return reasons

    def available_dates(
        self,
        provider_id: str,
        start: Optional[DateLike] = None,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[date]:
        """Dates in [start, start+days) on which the provider has a free slot."""
        now = now or self._clock()
        first = parse_date(start) if start is not None else now.date()
        horizon = days if days is not None else self._config.booking_horizon_days
        if horizon < 1:
            raise ValueError(f"days must be >= 1, got {horizon}")
        return [
            day for day in date_range(first, horizon)
            if self.list_available_slots(provider_id, day, now=now)
        ]

    def all_time_slots(
        self,
        start_hour: Optional[int] = None,
        end_hour: Optional[int] = None,
        interval: Optional[int] = None,
    ) -> list[str]:
        """The configured slot grid, overridable per call."""
        return generate_time_slots(
            self._config.day_start_hour if start_hour is None else start_hour,
            self._config.day_end_hour if end_hour is None else end_hour,
            self._config.slot_interval_minutes if interval is None else interval,
        )


def _classify_by_ratio(available: int, total_valid: int) -> AvailabilityStatus:
    """Bucket a day by available/total with exact thresholds 0, 25% and 50%."""
    if available == 0:
        return AvailabilityStatus(
            state=AvailabilityState.FULLY_BOOKED,
            reason="Fully booked" if total_valid else "No remaining slots today",
            availability_level=AvailabilityLevel.NONE,
            available_count=0,
            total_valid_count=total_valid,
        )

    percent = round(available * 100 / total_valid)
    reason = f"{available} slots available ({percent}% of day)"
    # Integer cross-multiplication keeps the boundaries exact.
    if available * 4 < total_valid:
        state, level = AvailabilityState.MOSTLY_BOOKED, AvailabilityLevel.LOW
    elif available * 2 < total_valid:
        state, level = AvailabilityState.PARTIALLY_BOOKED, AvailabilityLevel.MEDIUM
    else:
        state, level = AvailabilityState.AVAILABLE, AvailabilityLevel.HIGH
    return AvailabilityStatus(
        state=state,
        reason=reason,
        availability_level=level,
        available_count=available,
        total_valid_count=total_valid,
    )
