# backend/booking_core/services/slots/availability.py
"""
Availability read path used by the API.

compute_slots() with an optional short-lived Redis cache in front of it and
an optional not_before cutoff applied on top. The cached value is always the
plain compute_slots() result, so it never depends on the time of the request.
"""

import logging
from datetime import date, datetime
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from ...domain import Slot
from ...storage import BookingStorage
from ..retry import call_with_storage_retry
from .calculator import compute_slots
from .config import BookingConfig, get_booking_config
from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def get_availability(
    storage: BookingStorage,
    service_id: int,
    from_date: date,
    to_date: date,
    slot_length: Optional[int] = None,
    config: BookingConfig | None = None,
    redis: Redis | None = None,
    not_before: datetime | None = None,
) -> list[Slot]:
    """
    Offerable slots for a service, optionally cached and cut off at not_before.
    """
    config = config or get_booking_config()

    slots = _get_slots(storage, service_id, from_date, to_date, slot_length, config, redis)

    if not_before is not None:
        slots = [s for s in slots if s.start >= not_before]
    return slots


def _get_slots(
    storage: BookingStorage,
    service_id: int,
    from_date: date,
    to_date: date,
    slot_length: Optional[int],
    config: BookingConfig,
    redis: Redis | None,
) -> list[Slot]:
    """Get slots, using Redis cache when available."""
    if redis is None or not config.cache_enabled:
        return call_with_storage_retry(
            config, compute_slots, storage, service_id, from_date, to_date, slot_length, config
        )

    store = SlotsRedisStore(redis, config)
    try:
        # Generation is read before computing; see redis_store
        generation = store.get_generation(service_id)
        cached = store.get_slots(service_id, generation, from_date, to_date, slot_length)
    except RedisError:
        logger.exception("Slots cache read failed for service_id=%s", service_id)
        return call_with_storage_retry(
            config, compute_slots, storage, service_id, from_date, to_date, slot_length, config
        )
    if cached is not None:
        return cached

    # Cache miss: calculate and store
    slots = call_with_storage_retry(
        config, compute_slots, storage, service_id, from_date, to_date, slot_length, config
    )
    try:
        store.store_slots(service_id, generation, from_date, to_date, slot_length, slots)
    except RedisError:
        logger.exception("Slots cache write failed for service_id=%s", service_id)
    return slots
