# backend/booking_core/services/slots/__init__.py
"""
Slots calculation module.

compute_slots: pure computation from rules, holidays and bookings
get_availability: API read path (optional Redis cache, not_before cutoff)
"""

from .config import BookingConfig, get_booking_config
from .calculator import compute_slots, matching_windows, rule_window
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_service_cache
from .availability import get_availability

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "compute_slots",
    "matching_windows",
    "rule_window",
    "SlotsRedisStore",
    "invalidate_service_cache",
    "get_availability",
]
