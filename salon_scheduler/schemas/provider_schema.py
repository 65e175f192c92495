"""Provider (salonist) records and availability read models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on-leave"


class Provider(BaseModel):
    """A salonist who can be booked at one salon."""

    provider_id: str
    salon_id: str
    name: str
    specialties: list[str] = Field(default_factory=list)
    status: ProviderStatus = ProviderStatus.ACTIVE
    rating: float = 0.0


class Salon(BaseModel):
    salon_id: str
    name: str
    city: Optional[str] = None


class AvailabilityState(str, Enum):
    """Day-level classification returned by the resolver's status query."""

    UNSCHEDULED = "unscheduled"
    ON_LEAVE = "on-leave"
    PARTIAL_LEAVE = "partial-leave"
    FULLY_BOOKED = "booked"
    MOSTLY_BOOKED = "mostly-booked"
    PARTIALLY_BOOKED = "partially-booked"
    AVAILABLE = "available"


class AvailabilityLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AvailabilityStatus(BaseModel):
    """Result of the resolver's status query for one provider and date."""

    state: AvailabilityState
    reason: str
    availability_level: AvailabilityLevel
    available_count: int = 0
    total_valid_count: int = 0


class UnavailableReasonKind(str, Enum):
    BOOKED = "Booked"
    ON_LEAVE = "OnLeave"
    PAST = "Past"
    NOT_SCHEDULED = "NotScheduled"
    UNAVAILABLE = "Unavailable"


class UnavailableReason(BaseModel):
    """Why a single template slot is not offered."""

    kind: UnavailableReasonKind
    detail: Optional[str] = None
