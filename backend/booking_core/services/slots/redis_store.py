# backend/booking_core/services/slots/redis_store.py
"""
Redis storage for computed slots.

Key format: slots:svc:{service_id}:g{generation}:{from_date}:{to_date}:{slot_length|default}
Value: JSON list of slots (start/end ISO-8601 UTC, capacity_remaining, rule_id).

Generation: slots:gen:{service_id}, an integer bumped on every write touching
the service (booking, rule, holiday, service itself). Readers take the
generation before computing and store under it, so a result computed from
pre-write data can only land under a generation nobody reads any more.

Entries live for cache_ttl_seconds at most.
"""

import json
from datetime import date
from typing import Optional

from redis import Redis

from ...domain import Slot
from .config import BookingConfig, get_booking_config


class SlotsRedisStore:
    """Redis storage wrapper for computed slot lists."""

    KEY_PREFIX = "slots:svc"
    GENERATION_PREFIX = "slots:gen"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(
        self,
        service_id: int,
        generation: int,
        from_date: date,
        to_date: date,
        slot_length: Optional[int],
    ) -> str:
        length = slot_length if slot_length else "default"
        return (
            f"{self.KEY_PREFIX}:{service_id}:g{generation}:"
            f"{from_date.isoformat()}:{to_date.isoformat()}:{length}"
        )

    def _generation_key(self, service_id: int) -> str:
        return f"{self.GENERATION_PREFIX}:{service_id}"

    # ── Generation ───────────────────────────────────────────────────────

    def get_generation(self, service_id: int) -> int:
        raw = self.redis.get(self._generation_key(service_id))
        return int(raw) if raw is not None else 0

    def bump_generation(self, service_id: int) -> int:
        return int(self.redis.incr(self._generation_key(service_id)))

    # ── Write ────────────────────────────────────────────────────────────

    def store_slots(
        self,
        service_id: int,
        generation: int,
        from_date: date,
        to_date: date,
        slot_length: Optional[int],
        slots: list[Slot],
    ) -> None:
        """Store computed slots (empty list included) with the configured TTL."""
        if not self.config.cache_enabled:
            return
        key = self._key(service_id, generation, from_date, to_date, slot_length)
        payload = json.dumps([s.to_dict() for s in slots])
        self.redis.set(key, payload, ex=self.config.cache_ttl_seconds)

    # ── Read ─────────────────────────────────────────────────────────────

    def get_slots(
        self,
        service_id: int,
        generation: int,
        from_date: date,
        to_date: date,
        slot_length: Optional[int],
    ) -> list[Slot] | None:
        """
        Get cached slots.

        Returns:
            List of slots, or None on cache miss.
        """
        if not self.config.cache_enabled:
            return None
        raw = self.redis.get(self._key(service_id, generation, from_date, to_date, slot_length))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return [Slot.from_dict(item) for item in json.loads(raw)]

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_service_slots(self, service_id: int) -> int:
        """
        Delete every cached range of a service, all generations.

        Returns:
            Number of deleted keys.
        """
        pattern = f"{self.KEY_PREFIX}:{service_id}:*"
        keys = self.redis.keys(pattern)
        if not keys:
            return 0
        return self.redis.delete(*keys)
