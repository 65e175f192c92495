from salon_scheduler.stores.bookings import InMemoryBookingStore, is_slot_booked
from salon_scheduler.stores.leaves import InMemoryLeaveStore, is_slot_on_leave
from salon_scheduler.stores.providers import InMemoryProviderDirectory
from salon_scheduler.stores.templates import InMemoryTemplateStore

__all__ = [
    "InMemoryBookingStore",
    "InMemoryLeaveStore",
    "InMemoryProviderDirectory",
    "InMemoryTemplateStore",
    "is_slot_booked",
    "is_slot_on_leave",
]
