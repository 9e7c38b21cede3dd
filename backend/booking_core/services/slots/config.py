# backend/booking_core/services/slots/config.py
"""
Booking configuration for slot computation and reservations.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import Settings, settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the booking engine.

    Attributes:
        max_range_days: Longest date range a single slot query may cover
        min_advance_minutes: Slots starting earlier than now + this are not offered/bookable
        approval_required: New bookings start "pending" (True) or "confirmed" (False)
        request_timeout_seconds: Upper bound for one reserve/cancel/confirm unit
        storage_retry_attempts: Attempts for transient storage faults
        storage_retry_backoff_seconds: Base of the exponential backoff between attempts
        cache_ttl_seconds: Redis TTL for computed slots, 0 disables the cache
    """
    max_range_days: int = 62
    min_advance_minutes: int = 0
    approval_required: bool = True
    request_timeout_seconds: float = 5.0
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.1
    cache_ttl_seconds: int = 0

    def __post_init__(self):
        """Validate configuration."""
        if self.max_range_days < 1:
            raise ValueError(f"max_range_days must be >= 1, got {self.max_range_days}")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if self.storage_retry_attempts < 1:
            raise ValueError("storage_retry_attempts must be >= 1")
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")

    @property
    def cache_enabled(self) -> bool:
        return self.cache_ttl_seconds > 0

    @classmethod
    def from_settings(cls, source: Settings) -> "BookingConfig":
        return cls(
            max_range_days=source.max_range_days,
            min_advance_minutes=source.min_advance_minutes,
            approval_required=source.approval_required,
            request_timeout_seconds=source.request_timeout_seconds,
            storage_retry_attempts=source.storage_retry_attempts,
            storage_retry_backoff_seconds=source.storage_retry_backoff_seconds,
            cache_ttl_seconds=source.slot_cache_ttl_seconds,
        )


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton) built from environment settings."""
    return BookingConfig.from_settings(settings)
