"""
Engine assembly: stores, cache, resolver and admission controller wired
around one shared clock.

Usage:
    engine = build_engine()
    engine.templates.set_working_hours("sal-1", weekdays, 9, 17)
    slots = engine.resolver.list_available_slots("sal-1", "2025-03-17")
"""

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from salon_scheduler.config import AppConfig, settings
from salon_scheduler.scheduling.admission import BookingAdmissionController
from salon_scheduler.scheduling.cache import AvailabilityCache
from salon_scheduler.scheduling.resolver import AvailabilityResolver
from salon_scheduler.stores.bookings import InMemoryBookingStore
from salon_scheduler.stores.leaves import InMemoryLeaveStore
from salon_scheduler.stores.providers import InMemoryProviderDirectory
from salon_scheduler.stores.templates import InMemoryTemplateStore

logger = logging.getLogger(__name__)


@dataclass
class SchedulingEngine:
    """Everything a caller needs to query availability and admit bookings."""

    providers: InMemoryProviderDirectory
    templates: InMemoryTemplateStore
    leaves: InMemoryLeaveStore
    bookings: InMemoryBookingStore
    resolver: AvailabilityResolver
    admission: BookingAdmissionController
    cache: Optional[AvailabilityCache] = None

    def invalidate_provider(self, provider_id: str) -> None:
        """Call after editing a provider's template or leave outside the admission path."""
        if self.cache is not None:
            self.cache.invalidate_provider(provider_id)


def build_engine(
    config: AppConfig = settings,
    clock: Callable[[], datetime] = datetime.now,
    cache_clock: Callable[[], float] = time.monotonic,
    seed_demo_data: bool = False,
    demo_base_date: Optional[date] = None,
) -> SchedulingEngine:
    """Create an in-memory engine, optionally filled with the demo salons."""
    providers = InMemoryProviderDirectory()
    templates = InMemoryTemplateStore()
    leaves = InMemoryLeaveStore()
    bookings = InMemoryBookingStore()

    cache = (
        AvailabilityCache(config.cache.availability_ttl_sec, clock=cache_clock)
        if config.cache.enabled
        else None
    )
    resolver = AvailabilityResolver(
        providers, templates, leaves, bookings,
        cache=cache, clock=clock, config=config.scheduling,
    )
    admission = BookingAdmissionController(
        resolver, bookings, cache=cache, clock=clock, config=config.scheduling,
    )
    engine = SchedulingEngine(
        providers=providers,
        templates=templates,
        leaves=leaves,
        bookings=bookings,
        resolver=resolver,
        admission=admission,
        cache=cache,
    )

    if seed_demo_data:
        from salon_scheduler.stores.mock_data import seed_demo_data as seed

        seed(engine, base_date=demo_base_date or clock().date(), config=config.scheduling)
        logger.info("Demo data seeded relative to %s", demo_base_date or clock().date())
    return engine
