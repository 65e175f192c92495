"""
Finite state machine for the booking lifecycle.

Every status change a booking can undergo is an explicit transition in
TRANSITIONS. Anything else is rejected with InvalidStateTransitionError,
and every accepted change is appended to the booking's history, so a
booking's past is never lost.

Usage:
    sm = BookingStateMachine(booking)
    sm.transition(BookingTrigger.CONFIRM, actor="salon-admin")
    assert booking.status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from salon_scheduler.errors import InvalidStateTransitionError
from salon_scheduler.schemas.booking_schema import Booking, BookingStatus, StatusChange

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that cause status transitions."""
    CONFIRM = "confirm"
    COMPLETE = "complete"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    MARK_NO_SHOW = "mark_no_show"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger


class BookingStateMachine:
    """Applies lifecycle transitions to a Booking in place."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingTrigger.CONFIRM),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingTrigger.COMPLETE),

        # --- Cancellation ---
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingTrigger.CANCEL),

        # --- Reschedule (old booking side) ---
        Transition(BookingStatus.PENDING, BookingStatus.RESCHEDULED, BookingTrigger.RESCHEDULE),
        Transition(BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED, BookingTrigger.RESCHEDULE),

        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, BookingTrigger.MARK_NO_SHOW),
    ]

    TERMINAL: frozenset[BookingStatus] = frozenset({
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.RESCHEDULED,
        BookingStatus.NO_SHOW,
    })

    def __init__(self, booking: Booking, clock: Callable[[], datetime] = datetime.now) -> None:
        self._booking = booking
        self._clock = clock

    @property
    def current_status(self) -> BookingStatus:
        return self._booking.status

    def transition(
        self,
        trigger: BookingTrigger,
        actor: Optional[str] = None,
        note: Optional[str] = None,
    ) -> BookingStatus:
        """
        Execute a status transition.

        Args:
            trigger: The event triggering the transition.
            actor: Who requested the change, recorded in history.
            note: Free-text reason, recorded in history.

        Returns:
            The booking's new status.

        Raises:
            InvalidStateTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_status == self._booking.status and t.trigger == trigger:
                old_status = self._booking.status
                changed_at = self._clock()
                self._booking.status = t.to_status
                self._booking.updated_at = changed_at
                self._booking.history.append(StatusChange(
                    status=t.to_status,
                    changed_at=changed_at,
                    actor=actor,
                    note=note,
                ))
                logger.debug(
                    "Booking %s: %s -> %s (trigger: %s)",
                    self._booking.booking_id, old_status.value, t.to_status.value, trigger.value,
                )
                return t.to_status

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidStateTransitionError(
            f"Cannot {trigger.value.replace('_', ' ')} booking {self._booking.booking_id} "
            f"in status '{self._booking.status.value}'. Valid triggers: {valid}",
            details={"status": self._booking.status.value, "trigger": trigger.value},
        )

    def can(self, trigger: BookingTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def get_valid_triggers(self) -> list[BookingTrigger]:
        """Return all triggers valid from the current status."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == self._booking.status]

    def get_history(self) -> list[StatusChange]:
        return list(self._booking.history)

    def is_terminal(self) -> bool:
        return self._booking.status in self.TERMINAL
