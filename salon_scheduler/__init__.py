"""Availability and booking-admission engine for salon appointments."""

__version__ = "0.1.0"
