"""
Schedule Template Store: each provider's recurring weekly slot template.

A template entry is the ordered set of slot-start labels a provider is
nominally bookable at on one weekday. No entry (or an empty one) means the
provider does not work that weekday, which is a normal answer, not an error.
"""

import logging
import threading
from typing import Iterable, Mapping, Protocol

from salon_scheduler.time_model import Weekday, generate_time_slots, normalize_time

logger = logging.getLogger(__name__)


class TemplateStore(Protocol):
    def template_for(self, provider_id: str, weekday: Weekday) -> tuple[str, ...]:
        ...


def build_template(labels: Iterable[str]) -> tuple[str, ...]:
    """Validate labels and return them ascending by time, one label per minute value.

    Raises:
        InvalidTimeFormatError: If any label cannot be parsed.
    """
    by_minute: dict[int, str] = {}
    for label in labels:
        by_minute.setdefault(normalize_time(label), label)
    return tuple(by_minute[m] for m in sorted(by_minute))


class InMemoryTemplateStore:
    """Dict-backed template store keyed by (provider_id, weekday)."""

    def __init__(self) -> None:
        self._templates: dict[tuple[str, Weekday], tuple[str, ...]] = {}
        self._lock = threading.Lock()

    def template_for(self, provider_id: str, weekday: Weekday) -> tuple[str, ...]:
        with self._lock:
            return self._templates.get((provider_id, Weekday(weekday)), ())

    def set_template(self, provider_id: str, weekday: Weekday, labels: Iterable[str]) -> tuple[str, ...]:
        template = build_template(labels)
        with self._lock:
            self._templates[(provider_id, Weekday(weekday))] = template
        logger.debug(
            "Template set for %s on %s: %d slots", provider_id, Weekday(weekday).name, len(template)
        )
        return template

    def set_week(self, provider_id: str, week: Mapping[Weekday, Iterable[str]]) -> None:
        """Replace a provider's whole week; weekdays not in ``week`` become unscheduled."""
        templates = {Weekday(day): build_template(labels) for day, labels in week.items()}
        with self._lock:
            for day in Weekday:
                self._templates.pop((provider_id, day), None)
            for day, template in templates.items():
                self._templates[(provider_id, day)] = template

    def set_working_hours(
        self,
        provider_id: str,
        weekdays: Iterable[Weekday],
        start_hour: int,
        end_hour: int,
        interval: int = 30,
    ) -> None:
        """Fill the given weekdays with a regular grid of slots."""
        labels = generate_time_slots(start_hour, end_hour, interval)
        for day in weekdays:
            self.set_template(provider_id, day, labels)

    def clear(self) -> None:
        with self._lock:
            self._templates.clear()
