"""
Exception hierarchy for the scheduling engine.

Three families, handled differently by callers:

* input errors (bad time label, bad date, malformed request) are raised
  before any store is touched;
* business-rule conflicts (slot taken, illegal status change) are expected
  under normal concurrent use and are never retried by the engine;
* infrastructure errors (store unreachable) are the only retryable kind,
  and retrying them is the transport layer's job.

Each class carries the ``kind`` name used at the service boundary and the
HTTP status it maps to.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base exception for all scheduling engine errors."""

    kind: str = "SchedulingError"
    http_status: int = 500
    retryable: bool = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Error envelope in the shape the booking UI expects."""
        error: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "code": self.http_status,
        }
        if self.details:
            error["details"] = self.details
        return {"success": False, "error": error}


class InvalidTimeFormatError(SchedulingError, ValueError):
    """Raised when a clock-time label cannot be parsed."""

    kind = "InvalidTimeFormat"
    http_status = 400


class InvalidDateFormatError(SchedulingError, ValueError):
    """Raised when a date value cannot be parsed."""

    kind = "InvalidDateFormat"
    http_status = 400


class InvalidBookingRequestError(SchedulingError, ValueError):
    """Raised when a booking request is structurally invalid (duration, services)."""

    kind = "InvalidBookingRequest"
    http_status = 400


class NotFoundError(SchedulingError, LookupError):
    """Raised for an unknown provider, salon or booking id."""

    kind = "NotFound"
    http_status = 404


class SlotNoLongerAvailableError(SchedulingError):
    """Raised when the requested slot was taken between read and write."""

    kind = "SlotNoLongerAvailable"
    http_status = 409


class InvalidStateTransitionError(SchedulingError):
    """Raised when a booking status change is not allowed from its current status."""

    kind = "InvalidStateTransition"
    http_status = 409


class StoreUnavailableError(SchedulingError):
    """Raised by a store implementation when its backend cannot be reached."""

    kind = "Unavailable"
    http_status = 503
    retryable = True
