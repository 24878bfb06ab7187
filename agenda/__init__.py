"""Availability and scheduling engine for appointment bookings."""

__version__ = "0.1.0"
