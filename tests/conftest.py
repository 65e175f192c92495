"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta
from typing import Optional

import pytest

from salon_scheduler.config import AppConfig, CacheConfig, SchedulingConfig
from salon_scheduler.engine import build_engine
from salon_scheduler.schemas.booking_schema import (
    BookedService,
    Booking,
    BookingStatus,
    StatusChange,
)
from salon_scheduler.schemas.provider_schema import Provider, Salon
from salon_scheduler.time_model import Weekday

# 2025-03-17 is a Monday.
MONDAY = date(2025, 3, 17)
SATURDAY = MONDAY + timedelta(days=5)
WEEKDAYS = [Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY]


class FixedClock:
    """Wall clock that only moves when a test moves it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


def make_config(ttl: float = 60.0, cache_enabled: bool = True) -> AppConfig:
    return AppConfig(
        scheduling=SchedulingConfig(
            slot_interval_minutes=30,
            day_start_hour=8,
            day_end_hour=20,
            default_service_minutes=30,
            booking_horizon_days=90,
        ),
        cache=CacheConfig(availability_ttl_sec=ttl, enabled=cache_enabled),
    )


@pytest.fixture
def clock():
    # The Friday before MONDAY, early morning.
    return FixedClock(datetime(2025, 3, 14, 8, 0))


@pytest.fixture
def monotonic():
    return FakeMonotonic()


def make_engine(clock, monotonic=None, cache_enabled: bool = True):
    """Engine with salon S1 and provider P1 working Mon-Fri 09:00-17:00."""
    eng = build_engine(
        make_config(cache_enabled=cache_enabled), clock=clock, cache_clock=monotonic or FakeMonotonic()
    )
    eng.providers.add_salon(Salon(salon_id="S1", name="Test Salon"))
    eng.providers.add_provider(Provider(provider_id="P1", salon_id="S1", name="Situ"))
    eng.templates.set_working_hours("P1", WEEKDAYS, 9, 17, 30)
    return eng


@pytest.fixture
def engine(clock, monotonic):
    return make_engine(clock, monotonic)


@pytest.fixture
def resolver(engine):
    return engine.resolver


@pytest.fixture
def admission(engine):
    return engine.admission


def make_booking(
    booking_id: str = "BK-TEST0001",
    provider_id: str = "P1",
    day: date = MONDAY,
    start_time: str = "10:00",
    duration: int = 30,
    status: BookingStatus = BookingStatus.PENDING,
    service_name: Optional[str] = "Haircut",
) -> Booking:
    """Helper to create a Booking without going through admission."""
    created = datetime(2025, 3, 14, 8, 0)
    hour, minute = divmod(int(start_time[:2]) * 60 + int(start_time[3:]) + duration, 60)
    services = [BookedService(name=service_name, duration=duration, price=35.0)] if service_name else []
    return Booking(
        booking_id=booking_id,
        provider_id=provider_id,
        customer_id="cust-1",
        salon_id="S1",
        date=day,
        start_time=start_time,
        end_time=f"{hour:02d}:{minute:02d}",
        duration=duration,
        services=services,
        status=status,
        created_at=created,
        updated_at=created,
        history=[StatusChange(status=status, changed_at=created)],
    )
