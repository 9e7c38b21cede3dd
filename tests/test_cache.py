"""Slot cache behaviour with an in-memory Redis."""

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from booking_core.services.slots import (
    SlotsRedisStore,
    get_availability,
    invalidate_service_cache,
)
from booking_core.storage import MemoryStorage
from tests.conftest import MONDAY, make_config, make_coordinator, make_customer, seed_haircut, utc


@pytest.fixture
def redis():
    return fakeredis.FakeRedis()


@pytest.fixture
def cache_config():
    return make_config(cache_ttl_seconds=30)


class TestSlotsRedisStore:
    def test_round_trip_preserves_slots(self, memory_storage, redis, cache_config):
        service, _ = seed_haircut(memory_storage)
        slots = get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )
        store = SlotsRedisStore(redis, cache_config)
        assert store.get_slots(service.id, 0, MONDAY, MONDAY, None) == slots

    def test_ttl_applied(self, memory_storage, redis, cache_config):
        service, _ = seed_haircut(memory_storage)
        get_availability(memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis)
        key = f"slots:svc:{service.id}:g0:{MONDAY.isoformat()}:{MONDAY.isoformat()}:default"
        assert 0 < redis.ttl(key) <= 30

    def test_disabled_by_default(self, memory_storage, redis):
        service, _ = seed_haircut(memory_storage)
        get_availability(memory_storage, service.id, MONDAY, MONDAY, config=make_config(), redis=redis)
        assert redis.keys("slots:*") == []

    def test_cached_result_served(self, memory_storage, redis, cache_config):
        service, _ = seed_haircut(memory_storage)
        first = get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )
        # A direct store write bypasses invalidation, so the stale entry is served
        memory_storage.create_holiday(service.id, MONDAY)
        second = get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )
        assert second == first


class TestInvalidation:
    def test_reserve_invalidates(self, memory_storage, redis, cache_config):
        service, _ = seed_haircut(memory_storage)
        coordinator = make_coordinator(memory_storage, cache_config, redis=redis)
        assert len(get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )) == 6

        coordinator.reserve(service.id, utc(MONDAY, 10), utc(MONDAY, 10, 30), make_customer())

        assert redis.keys(f"slots:svc:{service.id}:*") == []
        slots = get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )
        assert len(slots) == 5

    def test_cancel_invalidates(self, memory_storage, redis, cache_config):
        service, _ = seed_haircut(memory_storage)
        coordinator = make_coordinator(memory_storage, cache_config, redis=redis)
        booking = coordinator.reserve(
            service.id, utc(MONDAY, 10), utc(MONDAY, 10, 30), make_customer()
        )
        assert len(get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )) == 5

        coordinator.cancel(booking.id)

        assert len(get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis
        )) == 6

    def test_only_target_service_cleared(self, memory_storage, redis, cache_config):
        first, _ = seed_haircut(memory_storage)
        second, _ = seed_haircut(memory_storage)
        for service in (first, second):
            get_availability(memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis)

        assert invalidate_service_cache(redis, first.id) == 1
        assert redis.keys(f"slots:svc:{first.id}:*") == []
        assert len(redis.keys(f"slots:svc:{second.id}:*")) == 1

    def test_without_redis(self):
        assert invalidate_service_cache(None, 1) == 0


class BrokenRedis(fakeredis.FakeRedis):
    def get(self, *args, **kwargs):
        raise RedisConnectionError("down")

    def set(self, *args, **kwargs):
        raise RedisConnectionError("down")

    def keys(self, *args, **kwargs):
        raise RedisConnectionError("down")


class TestRedisFailures:
    def test_read_path_falls_back_to_compute(self, memory_storage, cache_config):
        service, _ = seed_haircut(memory_storage)
        slots = get_availability(
            memory_storage, service.id, MONDAY, MONDAY, config=cache_config, redis=BrokenRedis()
        )
        assert len(slots) == 6

    def test_reserve_survives_invalidation_failure(self, memory_storage, cache_config):
        service, _ = seed_haircut(memory_storage)
        coordinator = make_coordinator(memory_storage, cache_config, redis=BrokenRedis())
        booking = coordinator.reserve(
            service.id, utc(MONDAY, 10), utc(MONDAY, 10, 30), make_customer()
        )
        assert memory_storage.get_booking(booking.id) is not None


class ReserveDuringReadStorage(MemoryStorage):
    """A booking commits right after the slot read fetched the bookings."""

    def __init__(self):
        super().__init__()
        self.coordinator = None
        self.service_id = None

    def list_active_bookings(self, service_id, start, end):
        bookings = super().list_active_bookings(service_id, start, end)
        if self.coordinator is not None:
            coordinator, self.coordinator = self.coordinator, None
            coordinator.reserve(
                self.service_id, utc(MONDAY, 10), utc(MONDAY, 10, 30), make_customer()
            )
        return bookings


class TestConcurrentWrite:
    def test_result_computed_before_write_is_not_served(self, redis, cache_config):
        storage = ReserveDuringReadStorage()
        service, _ = seed_haircut(storage)
        storage.service_id = service.id
        storage.coordinator = make_coordinator(storage, cache_config, redis=redis)

        # This read computes from data fetched before the booking committed
        stale = get_availability(storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis)
        assert len(stale) == 6

        fresh = get_availability(storage, service.id, MONDAY, MONDAY, config=cache_config, redis=redis)
        assert len(fresh) == 5
        assert utc(MONDAY, 10) not in [s.start for s in fresh]

    def test_invalidation_bumps_generation(self, memory_storage, redis, cache_config):
        service, _ = seed_haircut(memory_storage)
        store = SlotsRedisStore(redis, cache_config)
        assert store.get_generation(service.id) == 0
        invalidate_service_cache(redis, service.id)
        invalidate_service_cache(redis, service.id)
        assert store.get_generation(service.id) == 2
