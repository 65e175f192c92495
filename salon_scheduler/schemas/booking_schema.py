"""Booking records and request/response models."""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from salon_scheduler.time_model import normalize_time


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no-show"


# Statuses whose bookings no longer hold their time slot.
RELEASED_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.RESCHEDULED})


class BookedService(BaseModel):
    """A service line on a booking."""

    name: str
    duration: int = Field(gt=0, description="Minutes")
    price: float = Field(default=0.0, ge=0)
    service_id: Optional[str] = None
    category: Optional[str] = None


class StatusChange(BaseModel):
    """Recorded history entry for a status transition."""

    status: BookingStatus
    changed_at: dt.datetime
    actor: Optional[str] = None
    note: Optional[str] = None


class Booking(BaseModel):
    """A customer's claim on a provider's time."""

    booking_id: str
    provider_id: str
    customer_id: Optional[str] = None
    salon_id: Optional[str] = None
    date: dt.date
    start_time: str
    end_time: str
    duration: int = Field(gt=0)
    services: list[BookedService] = Field(default_factory=list)
    total_price: float = 0.0
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime
    cancellation_reason: Optional[str] = None
    rescheduled_from: Optional[str] = None
    rescheduled_to: Optional[str] = None
    history: list[StatusChange] = Field(default_factory=list)

    @property
    def start_minutes(self) -> int:
        return normalize_time(self.start_time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration

    @property
    def occupies_time(self) -> bool:
        return self.status not in RELEASED_STATUSES

    @property
    def primary_service_name(self) -> Optional[str]:
        return self.services[0].name if self.services else None


class BookingRequest(BaseModel):
    """Validated booking request data."""

    provider_id: str
    customer_id: Optional[str] = None
    date: dt.date
    start_time: str
    duration: Optional[int] = Field(default=None, gt=0)
    services: list[BookedService] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("provider_id", "customer_id")
    @classmethod
    def _not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class BookingUpdate(BaseModel):
    """Partial edit of an existing booking."""

    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0)
    services: Optional[list[BookedService]] = None
    notes: Optional[str] = None


class RescheduleRequest(BaseModel):
    date: dt.date
    start_time: str
    actor: Optional[str] = None


class StatusChangeRequest(BaseModel):
    actor: Optional[str] = None
    reason: Optional[str] = None


class BookingPage(BaseModel):
    """One page of a booking listing."""

    bookings: list[Booking]
    total: int
    page: int
    limit: int
    pages: int
