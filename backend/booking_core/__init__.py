"""Booking availability engine: slot computation and capacity-safe reservations."""

__version__ = "0.1.0"
