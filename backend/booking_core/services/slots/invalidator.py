# backend/booking_core/services/slots/invalidator.py
"""
Cache invalidation for computed slots.

Triggers:
✓ Booking reserved / canceled / confirmed
✓ Availability rule created / updated / deleted
✓ Holiday created / updated / deleted
✓ Service updated or deactivated
"""

import logging
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def invalidate_service_cache(redis: Optional[Redis], service_id: int) -> int:
    """
    Invalidate cached slots for a service.

    A Redis failure is logged, not raised: the write that triggered the
    invalidation is already committed, and stale entries expire on their TTL.
    Bumping the generation also orphans entries a concurrent reader is about
    to store from data read before the write.

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0
    store = SlotsRedisStore(redis)
    try:
        # Bump before delete; entries under the old generation are never read again
        store.bump_generation(service_id)
        deleted = store.delete_service_slots(service_id)
    except RedisError:
        logger.exception("Failed to invalidate slots cache for service_id=%s", service_id)
        return 0
    if deleted:
        logger.info("Slots cache invalidated: service_id=%s keys=%s", service_id, deleted)
    return deleted
