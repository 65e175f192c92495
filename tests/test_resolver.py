"""Tests for the availability resolver."""

from datetime import datetime, timedelta

import pytest

from salon_scheduler.errors import InvalidDateFormatError, InvalidTimeFormatError, NotFoundError
from salon_scheduler.scheduling.resolver import _classify_by_ratio
from salon_scheduler.schemas.leave_schema import FullDayLeave, PartialDayLeave
from salon_scheduler.schemas.provider_schema import (
    AvailabilityLevel,
    AvailabilityState,
    Provider,
    ProviderStatus,
    UnavailableReasonKind,
)
from salon_scheduler.time_model import generate_time_slots, weekday_of
from tests.conftest import MONDAY, SATURDAY, WEEKDAYS, make_booking, make_engine

FULL_DAY = generate_time_slots(9, 17, 30)


class TestFreeDay:
    def test_all_generated_slots_available(self, resolver):
        slots = resolver.list_available_slots("P1", MONDAY)
        assert slots == FULL_DAY
        assert len(slots) == 16

    def test_status_is_available(self, resolver):
        status = resolver.status_for("P1", MONDAY)
        assert status.state == AvailabilityState.AVAILABLE
        assert status.availability_level == AvailabilityLevel.HIGH
        assert status.reason == "16 slots available (100% of day)"
        assert (status.available_count, status.total_valid_count) == (16, 16)

    def test_accepts_iso_date_string(self, resolver):
        assert resolver.list_available_slots("P1", "2025-03-17") == FULL_DAY

    def test_no_unavailable_reasons(self, resolver):
        assert resolver.unavailable_reasons("P1", MONDAY) == {}


class TestBookingOverlap:
    def test_long_booking_blocks_every_overlapped_slot(self, engine, resolver):
        engine.admission.create_booking("P1", MONDAY, "10:00", duration=90)
        slots = resolver.list_available_slots("P1", MONDAY)
        for blocked in ("10:00 AM", "10:30 AM", "11:00 AM"):
            assert blocked not in slots
        assert "9:30 AM" in slots
        assert "11:30 AM" in slots
        assert len(slots) == 13

    def test_booked_reason_names_the_service(self, engine, resolver):
        engine.admission.create_booking(
            "P1", MONDAY, "10:00", services=[{"name": "Hair Coloring", "duration": 60, "price": 80}],
        )
        reasons = resolver.unavailable_reasons("P1", MONDAY)
        assert set(reasons) == {"10:00 AM", "10:30 AM"}
        assert reasons["10:30 AM"].kind == UnavailableReasonKind.BOOKED
        assert reasons["10:30 AM"].detail == "Hair Coloring"

    def test_booking_off_the_grid_blocks_both_neighbours(self, engine, resolver):
        engine.bookings.add(make_booking(start_time="10:15", duration=30))
        slots = resolver.list_available_slots("P1", MONDAY)
        assert "10:00 AM" not in slots
        assert "10:30 AM" not in slots
        assert "11:00 AM" in slots

    def test_cancelled_booking_does_not_block(self, engine, resolver):
        booking = engine.admission.create_booking("P1", MONDAY, "10:00")
        engine.admission.cancel_booking(booking.booking_id)
        assert "10:00 AM" in resolver.list_available_slots("P1", MONDAY)

    def test_other_provider_booking_ignored(self, engine, resolver):
        engine.bookings.add(make_booking(provider_id="P9", start_time="10:00"))
        assert resolver.list_available_slots("P1", MONDAY) == FULL_DAY


class TestLeave:
    def test_full_day_leave_returns_nothing(self, engine, resolver):
        engine.leaves.add_leave(FullDayLeave(
            provider_id="P1", start_date=MONDAY, end_date=MONDAY + timedelta(days=2), reason="Vacation",
        ))
        assert resolver.list_available_slots("P1", MONDAY) == []
        assert not resolver.check_slot("P1", MONDAY, "10:00 AM")

    def test_full_day_leave_status(self, engine, resolver):
        engine.leaves.add_leave(FullDayLeave(
            provider_id="P1", start_date=MONDAY, end_date=MONDAY, reason="Vacation",
        ))
        status = resolver.status_for("P1", MONDAY)
        assert status.state == AvailabilityState.ON_LEAVE
        assert status.reason == "On leave: Vacation"
        assert status.availability_level == AvailabilityLevel.NONE

    def test_full_day_leave_without_reason(self, engine, resolver):
        engine.leaves.add_leave(FullDayLeave(provider_id="P1", start_date=MONDAY, end_date=MONDAY))
        assert resolver.status_for("P1", MONDAY).reason == "On leave"

    def test_partial_leave_excludes_window(self, engine, resolver):
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="14:00", end_time="16:00",
        ))
        slots = resolver.list_available_slots("P1", MONDAY)
        for blocked in ("2:00 PM", "2:30 PM", "3:00 PM", "3:30 PM"):
            assert blocked not in slots
        assert "1:30 PM" in slots
        assert "4:00 PM" in slots
        assert len(slots) == 12

    def test_partial_leave_status(self, engine, resolver):
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="14:00", end_time="16:00",
        ))
        status = resolver.status_for("P1", MONDAY)
        assert status.state == AvailabilityState.PARTIAL_LEAVE
        assert status.availability_level == AvailabilityLevel.MEDIUM
        assert status.reason == "Available except 14:00 - 16:00"
        assert status.available_count == 12

    def test_multiple_partial_leaves_all_apply(self, engine, resolver):
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="9:00 AM", end_time="10:00 AM",
        ))
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="3:00 PM", end_time="5:00 PM",
        ))
        slots = resolver.list_available_slots("P1", MONDAY)
        assert slots[0] == "10:00 AM"
        assert slots[-1] == "2:30 PM"

    def test_leave_reason(self, engine, resolver):
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="2:00 PM", end_time="4:00 PM",
        ))
        reason = resolver.unavailable_reasons("P1", MONDAY)["2:30 PM"]
        assert reason.kind == UnavailableReasonKind.ON_LEAVE
        assert reason.detail == "2:00 PM - 4:00 PM"

    def test_cancelled_leave_frees_the_day(self, engine, resolver):
        leave = engine.leaves.add_leave(FullDayLeave(provider_id="P1", start_date=MONDAY, end_date=MONDAY))
        engine.leaves.cancel_leave(leave.leave_id)
        assert resolver.list_available_slots("P1", MONDAY) == FULL_DAY


class TestPastSlots:
    @pytest.fixture
    def long_day(self, engine, clock):
        engine.providers.add_provider(Provider(provider_id="P2", salon_id="S1", name="Arman"))
        engine.templates.set_working_hours("P2", WEEKDAYS, 8, 20, 30)
        clock.set(datetime(2025, 3, 17, 13, 5))
        return engine

    def test_slots_up_to_now_are_excluded(self, long_day):
        slots = long_day.resolver.list_available_slots("P2", MONDAY)
        assert slots[0] == "1:30 PM"
        assert "1:00 PM" not in slots
        assert len(slots) == 13

    def test_slot_starting_exactly_now_is_past(self, long_day, clock):
        clock.set(datetime(2025, 3, 17, 13, 0))
        assert not long_day.resolver.check_slot("P2", MONDAY, "1:00 PM")
        assert long_day.resolver.check_slot("P2", MONDAY, "1:30 PM")

    def test_past_reason(self, long_day):
        reasons = long_day.resolver.unavailable_reasons("P2", MONDAY)
        assert reasons["8:00 AM"].kind == UnavailableReasonKind.PAST
        assert reasons["1:00 PM"].kind == UnavailableReasonKind.PAST
        assert "1:30 PM" not in reasons

    def test_explicit_now_overrides_clock(self, long_day):
        slots = long_day.resolver.list_available_slots("P2", MONDAY, now=datetime(2025, 3, 17, 19, 0))
        assert slots == ["7:30 PM"]

    def test_status_counts_only_remaining_slots(self, long_day):
        status = long_day.resolver.status_for("P2", MONDAY)
        assert status.total_valid_count == 13
        assert status.state == AvailabilityState.AVAILABLE

    def test_earlier_date_is_entirely_past(self, engine, clock):
        clock.set(datetime(2025, 3, 18, 7, 0))
        assert engine.resolver.list_available_slots("P1", MONDAY) == []
        status = engine.resolver.status_for("P1", MONDAY)
        assert status.state == AvailabilityState.FULLY_BOOKED
        assert status.reason == "No remaining slots today"

    def test_booked_wins_over_past(self, long_day):
        long_day.bookings.add(make_booking(provider_id="P2", start_time="09:00"))
        reasons = long_day.resolver.unavailable_reasons("P2", MONDAY)
        assert reasons["9:00 AM"].kind == UnavailableReasonKind.BOOKED
        assert reasons["8:30 AM"].kind == UnavailableReasonKind.PAST


class TestUnscheduled:
    def test_weekend_has_no_slots(self, resolver):
        assert resolver.list_available_slots("P1", SATURDAY) == []

    def test_weekend_status(self, resolver):
        status = resolver.status_for("P1", SATURDAY)
        assert status.state == AvailabilityState.UNSCHEDULED
        assert status.reason == "Not scheduled to work today"

    def test_off_template_slot_not_bookable(self, resolver):
        assert not resolver.check_slot("P1", MONDAY, "8:30 AM")
        assert not resolver.check_slot("P1", MONDAY, "10:15 AM")

    def test_unscheduled_day_has_no_reasons(self, resolver):
        assert resolver.unavailable_reasons("P1", SATURDAY) == {}


class TestReasonPrecedence:
    def test_booked_wins_over_leave(self, engine, resolver):
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="10:00 AM", end_time="12:00 PM",
        ))
        engine.bookings.add(make_booking(start_time="10:00", duration=30, service_name="Facial"))
        reasons = resolver.unavailable_reasons("P1", MONDAY)
        assert reasons["10:00 AM"].kind == UnavailableReasonKind.BOOKED
        assert reasons["10:00 AM"].detail == "Facial"
        assert reasons["10:30 AM"].kind == UnavailableReasonKind.ON_LEAVE

    def test_leave_wins_over_past(self, engine, resolver, clock):
        clock.set(datetime(2025, 3, 17, 12, 0))
        engine.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="9:00 AM", end_time="10:00 AM",
        ))
        reasons = resolver.unavailable_reasons("P1", MONDAY)
        assert reasons["9:00 AM"].kind == UnavailableReasonKind.ON_LEAVE
        assert reasons["10:00 AM"].kind == UnavailableReasonKind.PAST


def fill_busy_day(engine):
    engine.leaves.add_leave(PartialDayLeave(
        provider_id="P1", date=MONDAY, start_time="2:00 PM", end_time="3:00 PM",
    ))
    engine.bookings.add(make_booking("BK-A", start_time="11:00", duration=60))
    engine.bookings.add(make_booking("BK-B", start_time="15:30", duration=45))
    return engine


class TestConsistency:
    @pytest.fixture
    def busy_day(self, engine, clock):
        clock.set(datetime(2025, 3, 17, 9, 40))
        return fill_busy_day(engine)

    def test_check_slot_agrees_with_listing(self, busy_day):
        resolver = busy_day.resolver
        listed = set(resolver.list_available_slots("P1", MONDAY))
        for label in FULL_DAY:
            assert resolver.check_slot("P1", MONDAY, label) == (label in listed)

    def test_reasons_partition_the_template(self, busy_day):
        resolver = busy_day.resolver
        listed = set(resolver.list_available_slots("P1", MONDAY))
        reasons = resolver.unavailable_reasons("P1", MONDAY)
        assert listed.isdisjoint(reasons)
        assert listed | set(reasons) == set(FULL_DAY)

    def test_listing_is_in_template_order(self, busy_day):
        slots = busy_day.resolver.list_available_slots("P1", MONDAY)
        assert slots == [label for label in FULL_DAY if label in slots]

    def test_check_slot_accepts_other_label_forms(self, resolver):
        assert resolver.check_slot("P1", MONDAY, "14:00")
        assert resolver.check_slot("P1", MONDAY, "2:00pm")


class TestRepeatedQueries:
    @pytest.mark.parametrize("cache_enabled", [True, False])
    def test_same_answers_without_writes(self, clock, cache_enabled):
        clock.set(datetime(2025, 3, 17, 9, 40))
        engine = fill_busy_day(make_engine(clock, cache_enabled=cache_enabled))
        resolver = engine.resolver
        first = (
            resolver.list_available_slots("P1", MONDAY),
            resolver.status_for("P1", MONDAY),
            resolver.unavailable_reasons("P1", MONDAY),
        )
        second = (
            resolver.list_available_slots("P1", MONDAY),
            resolver.status_for("P1", MONDAY),
            resolver.unavailable_reasons("P1", MONDAY),
        )
        assert first == second
        if cache_enabled:
            assert engine.cache.stats.hits == 5

    def test_cold_and_cached_engines_agree(self, clock):
        clock.set(datetime(2025, 3, 17, 9, 40))
        cached = fill_busy_day(make_engine(clock)).resolver
        cold = fill_busy_day(make_engine(clock, cache_enabled=False)).resolver
        cached.list_available_slots("P1", MONDAY)
        assert cached.list_available_slots("P1", MONDAY) == cold.list_available_slots("P1", MONDAY)
        assert cached.status_for("P1", MONDAY) == cold.status_for("P1", MONDAY)


class TestStatusMatchesListing:
    @pytest.fixture(params=[
        ("09:00", 0), ("09:00", 60), ("09:00", 240), ("09:00", 330), ("09:00", 390),
        ("09:00", 480), ("12:30", 150),
    ], ids=lambda p: f"{p[0]}+{p[1]}")
    def booked_day(self, request, engine):
        start, minutes = request.param
        if minutes:
            engine.bookings.add(make_booking(start_time=start, duration=minutes))
        return engine

    @pytest.mark.parametrize("now", [
        datetime(2025, 3, 14, 8, 0), datetime(2025, 3, 17, 10, 15), datetime(2025, 3, 17, 16, 45),
    ])
    def test_available_count_matches_listing(self, booked_day, now):
        resolver = booked_day.resolver
        slots = resolver.list_available_slots("P1", MONDAY, now=now)
        status = resolver.status_for("P1", MONDAY, now=now)
        assert status.available_count == len(slots)
        assert status.total_valid_count >= status.available_count

    def test_listing_stays_inside_template(self, booked_day):
        booked_day.leaves.add_leave(PartialDayLeave(
            provider_id="P1", date=MONDAY, start_time="3:00 PM", end_time="4:00 PM",
        ))
        booked_day.invalidate_provider("P1")
        template = booked_day.templates.template_for("P1", weekday_of(MONDAY))
        slots = booked_day.resolver.list_available_slots("P1", MONDAY)
        assert set(slots) <= set(template)
        assert "3:00 PM" not in slots
        assert booked_day.resolver.status_for("P1", MONDAY).available_count == len(slots)

    def test_full_day_leave_has_nothing_to_count(self, booked_day):
        booked_day.leaves.add_leave(FullDayLeave(provider_id="P1", start_date=MONDAY, end_date=MONDAY))
        booked_day.invalidate_provider("P1")
        assert booked_day.resolver.list_available_slots("P1", MONDAY) == []
        assert booked_day.resolver.status_for("P1", MONDAY).available_count == 0


class TestStatusThresholds:
    @pytest.mark.parametrize("available,total,state,level", [
        (0, 16, AvailabilityState.FULLY_BOOKED, AvailabilityLevel.NONE),
        (1, 16, AvailabilityState.MOSTLY_BOOKED, AvailabilityLevel.LOW),
        (3, 16, AvailabilityState.MOSTLY_BOOKED, AvailabilityLevel.LOW),
        (4, 16, AvailabilityState.PARTIALLY_BOOKED, AvailabilityLevel.MEDIUM),
        (7, 16, AvailabilityState.PARTIALLY_BOOKED, AvailabilityLevel.MEDIUM),
        (8, 16, AvailabilityState.AVAILABLE, AvailabilityLevel.HIGH),
        (16, 16, AvailabilityState.AVAILABLE, AvailabilityLevel.HIGH),
    ])
    def test_boundaries(self, available, total, state, level):
        status = _classify_by_ratio(available, total)
        assert status.state == state
        assert status.availability_level == level

    def test_reason_has_percentage(self):
        assert _classify_by_ratio(4, 16).reason == "4 slots available (25% of day)"

    def test_fully_booked_reason(self):
        assert _classify_by_ratio(0, 16).reason == "Fully booked"

    def test_fully_booked_day(self, engine, resolver):
        engine.bookings.add(make_booking(start_time="09:00", duration=480))
        status = resolver.status_for("P1", MONDAY)
        assert status.state == AvailabilityState.FULLY_BOOKED
        assert status.reason == "Fully booked"

    def test_mostly_booked_day(self, engine, resolver):
        engine.bookings.add(make_booking(start_time="09:00", duration=390))
        status = resolver.status_for("P1", MONDAY)
        assert status.available_count == 3
        assert status.state == AvailabilityState.MOSTLY_BOOKED


class TestProviders:
    def test_available_providers(self, engine, resolver):
        engine.providers.add_provider(Provider(provider_id="P2", salon_id="S1", name="Arman"))
        engine.templates.set_working_hours("P2", WEEKDAYS, 9, 17)
        engine.leaves.add_leave(FullDayLeave(provider_id="P2", start_date=MONDAY, end_date=MONDAY))
        assert resolver.list_available_providers("S1", MONDAY) == {"P1"}

    def test_inactive_providers_excluded(self, engine, resolver):
        engine.providers.add_provider(Provider(
            provider_id="P3", salon_id="S1", name="Ram", status=ProviderStatus.INACTIVE,
        ))
        engine.templates.set_working_hours("P3", WEEKDAYS, 9, 17)
        assert resolver.list_available_providers("S1", MONDAY) == {"P1"}

    def test_fully_booked_provider_excluded(self, engine, resolver):
        engine.bookings.add(make_booking(start_time="09:00", duration=480))
        assert resolver.list_available_providers("S1", MONDAY) == set()

    def test_nobody_works_weekends(self, resolver):
        assert resolver.list_available_providers("S1", SATURDAY) == set()

    def test_unknown_salon(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.list_available_providers("S-NOPE", MONDAY)


class TestInputErrors:
    def test_unknown_provider(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.list_available_slots("P-NOPE", MONDAY)

    def test_bad_date(self, resolver):
        with pytest.raises(InvalidDateFormatError):
            resolver.status_for("P1", "17/03/2025")

    def test_bad_slot_label(self, resolver):
        with pytest.raises(InvalidTimeFormatError):
            resolver.check_slot("P1", MONDAY, "half past ten")


class TestAvailableDates:
    def test_week_of_dates(self, resolver):
        dates = resolver.available_dates("P1", start=MONDAY - timedelta(days=1), days=7)
        assert dates == [MONDAY + timedelta(days=i) for i in range(5)]

    def test_leave_days_skipped(self, engine, resolver):
        engine.leaves.add_leave(FullDayLeave(
            provider_id="P1", start_date=MONDAY, end_date=MONDAY + timedelta(days=1),
        ))
        dates = resolver.available_dates("P1", start=MONDAY, days=5)
        assert dates == [MONDAY + timedelta(days=i) for i in range(2, 5)]

    def test_defaults_to_today_and_horizon(self, resolver):
        dates = resolver.available_dates("P1")
        assert dates[0] == datetime(2025, 3, 14).date()
        assert all(d.weekday() < 5 for d in dates)

    def test_invalid_days(self, resolver):
        with pytest.raises(ValueError):
            resolver.available_dates("P1", start=MONDAY, days=0)


class TestAllTimeSlots:
    def test_configured_grid(self, resolver):
        slots = resolver.all_time_slots()
        assert slots[0] == "8:00 AM"
        assert slots[-1] == "7:30 PM"

    def test_overrides(self, resolver):
        assert resolver.all_time_slots(9, 11, 60) == ["9:00 AM", "10:00 AM"]
