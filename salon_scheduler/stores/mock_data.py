"""
Deterministic demo data: salons, salonists, weekly templates, leave and bookings.

In production these rows come from the salon admin tools. Here they are
generated relative to a base date from a fixed seed, so the console demo
and the dev server always show the same week. Bookings go through the
admission controller, so the demo data obeys the no-double-booking rule.
"""

import logging
import random
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from salon_scheduler.config import SchedulingConfig, settings
from salon_scheduler.errors import SlotNoLongerAvailableError
from salon_scheduler.schemas.leave_schema import FullDayLeave, PartialDayLeave
from salon_scheduler.schemas.provider_schema import Provider, Salon
from salon_scheduler.time_model import Weekday, generate_time_slots

if TYPE_CHECKING:
    from salon_scheduler.engine import SchedulingEngine

logger = logging.getLogger(__name__)

DEMO_SEED = 42
BOOKING_DAYS = 14
MIN_BOOKINGS_PER_SALONIST = 5
MAX_BOOKINGS_PER_SALONIST = 10

MON_SAT = [Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY,
           Weekday.FRIDAY, Weekday.SATURDAY]
WED_SUN = [Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY, Weekday.SATURDAY,
           Weekday.SUNDAY]
MON_FRI = MON_SAT[:5]
TUE_SAT = MON_SAT[1:]

SALONS: list[Salon] = [
    Salon(salon_id="salon-1", name="Glamour Studio", city="Kathmandu"),
    Salon(salon_id="salon-2", name="Urban Cuts", city="Pokhara"),
]

# (provider_id, name, salon_id, specialties, working weekdays, start hour, end hour)
SALONISTS = [
    ("sal-1", "Situ", "salon-1", ["Haircut", "Hair Coloring", "Styling"], MON_SAT, 9, 18),
    ("sal-2", "Arman", "salon-1", ["Beard Trim", "Facial", "Hair Treatment"], WED_SUN, 10, 19),
    ("sal-3", "Ram", "salon-1", ["Haircut", "Shaving", "Massage"], MON_FRI, 8, 17),
    ("sal-4", "Gitu", "salon-2", ["Hair Coloring", "Styling", "Hair Spa"], TUE_SAT, 9, 18),
    ("sal-5", "Rahul", "salon-2", ["Haircut", "Beard Trim", "Facial"], MON_SAT, 8, 20),
    ("sal-6", "Roman", "salon-2", ["Haircut", "Styling"], MON_FRI, 11, 20),
]

# (name, minutes, price)
SERVICE_MENU = [
    ("Basic Haircut", 30, 35.0),
    ("Premium Haircut", 45, 55.0),
    ("Beard Trim", 30, 20.0),
    ("Blowout", 30, 40.0),
    ("Facial", 60, 45.0),
    ("Root Touch-up", 90, 65.0),
    ("Full Color", 120, 90.0),
]


def _leaves(base: date) -> list:
    day = lambda offset: base + timedelta(days=offset)  # noqa: E731
    return [
        FullDayLeave(provider_id="sal-1", start_date=day(5), end_date=day(7), reason="Vacation"),
        PartialDayLeave(provider_id="sal-1", date=day(10), start_time="10:00 AM",
                        end_time="2:00 PM", reason="Personal appointment"),
        FullDayLeave(provider_id="sal-2", start_date=day(3), end_date=day(4), reason="Family event"),
        PartialDayLeave(provider_id="sal-3", date=day(2), start_time="2:00 PM",
                        end_time="6:00 PM", reason="Training session"),
        FullDayLeave(provider_id="sal-4", start_date=day(8), end_date=day(12), reason="Vacation"),
        PartialDayLeave(provider_id="sal-5", date=day(1), start_time="9:00 AM",
                        end_time="11:00 AM", reason="Doctor appointment"),
        FullDayLeave(provider_id="sal-6", start_date=day(15), end_date=day(20), reason="Vacation"),
    ]


def seed_demo_data(
    engine: "SchedulingEngine",
    base_date: date,
    config: SchedulingConfig = settings.scheduling,
    seed: int = DEMO_SEED,
) -> dict[str, int]:
    """Populate an engine's stores; returns row counts per kind."""
    rng = random.Random(seed)
    counts = {"salons": 0, "providers": 0, "leaves": 0, "bookings": 0, "rejected": 0}

    for salon in SALONS:
        engine.providers.add_salon(salon)
        counts["salons"] += 1

    for provider_id, name, salon_id, specialties, weekdays, start_hour, end_hour in SALONISTS:
        engine.providers.add_provider(Provider(
            provider_id=provider_id,
            salon_id=salon_id,
            name=name,
            specialties=specialties,
            rating=round(rng.uniform(4.5, 4.9), 1),
        ))
        labels = generate_time_slots(start_hour, end_hour, config.slot_interval_minutes)
        engine.templates.set_week(provider_id, {weekday: labels for weekday in weekdays})
        counts["providers"] += 1

    for leave in _leaves(base_date):
        engine.leaves.add_leave(leave)
        counts["leaves"] += 1

    seed_now = datetime.combine(base_date, time.min)
    for provider_id, *_ in SALONISTS:
        for _ in range(rng.randint(MIN_BOOKINGS_PER_SALONIST, MAX_BOOKINGS_PER_SALONIST)):
            day = base_date + timedelta(days=rng.randrange(BOOKING_DAYS))
            hour = rng.randrange(8, 20)
            minute = rng.choice((0, 30))
            name, minutes, price = rng.choice(SERVICE_MENU)
            try:
                booking = engine.admission.create_booking(
                    provider_id,
                    day,
                    f"{hour:02d}:{minute:02d}",
                    services=[{"name": name, "duration": minutes, "price": price}],
                    customer_id=f"cust-{rng.randrange(100, 1000)}",
                    now=seed_now,
                )
            except SlotNoLongerAvailableError:
                counts["rejected"] += 1
                continue
            if rng.random() < 0.7:
                engine.admission.confirm_booking(booking.booking_id, actor="seed")
            counts["bookings"] += 1

    logger.debug("Demo data: %s", counts)
    return counts
