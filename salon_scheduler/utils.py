"""Shared booking utilities used across the scheduler."""

from typing import Iterable

from salon_scheduler.schemas.booking_schema import BookedService


def calculate_total_duration(services: Iterable[BookedService]) -> int:
    """Sum of service durations in minutes.

    Examples:
        >>> calculate_total_duration([BookedService(name="Haircut", duration=30),
        ...                           BookedService(name="Beard Trim", duration=15)])
        45
        >>> calculate_total_duration([])
        0
    """
    return sum(service.duration for service in services)


def calculate_total_price(services: Iterable[BookedService]) -> float:
    """Sum of service prices, rounded to cents."""
    return round(sum(service.price for service in services), 2)
