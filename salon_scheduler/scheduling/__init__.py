from salon_scheduler.scheduling.admission import BookingAdmissionController
from salon_scheduler.scheduling.cache import AvailabilityCache, DaySnapshot
from salon_scheduler.scheduling.resolver import AvailabilityResolver
from salon_scheduler.scheduling.state_machine import (
    BookingStateMachine,
    BookingTrigger,
)

__all__ = [
    "AvailabilityResolver",
    "BookingAdmissionController",
    "AvailabilityCache",
    "DaySnapshot",
    "BookingStateMachine",
    "BookingTrigger",
]
