"""
FastAPI dependencies.

Tests and alternative deployments swap these through app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from redis import Redis

from .config import settings
from .redis_client import redis_client
from .services.reservations import ReservationCoordinator
from .services.slots.config import BookingConfig, get_booking_config
from .storage import BookingStorage, build_storage


@lru_cache
def get_storage() -> BookingStorage:
    return build_storage(settings)


def get_redis() -> Optional[Redis]:
    return redis_client


def get_config() -> BookingConfig:
    return get_booking_config()


def get_coordinator(
    storage: BookingStorage = Depends(get_storage),
    config: BookingConfig = Depends(get_config),
    redis: Optional[Redis] = Depends(get_redis),
) -> ReservationCoordinator:
    return ReservationCoordinator(storage, config=config, redis=redis)
