"""Shared test fixtures and helpers."""

from datetime import date, datetime, timezone
from typing import Optional

import pytest

from booking_core.database import make_engine, make_session_factory
from booking_core.domain import Customer
from booking_core.models import Base
from booking_core.services.reservations import ReservationCoordinator
from booking_core.services.slots import BookingConfig
from booking_core.storage import MemoryStorage, SqlStorage

# 2030-01-07 is a Monday (weekday 1 with Sunday = 0)
MONDAY = date(2030, 1, 7)
MONDAY_WEEKDAY = 1

NOW = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)


def utc(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def make_config(**overrides) -> BookingConfig:
    """Test config: short timeout, no backoff sleeps."""
    values = {
        "request_timeout_seconds": 2.0,
        "storage_retry_backoff_seconds": 0,
    }
    values.update(overrides)
    return BookingConfig(**values)


def make_customer(name: str = "Ada", email: str = "ada@example.com") -> Customer:
    return Customer(name=name, email=email)


def seed_haircut(
    storage,
    capacity: int = 1,
    weekday: int = MONDAY_WEEKDAY,
    start: str = "09:00",
    end: str = "12:00",
    tz: str = "UTC",
    duration_minutes: int = 30,
):
    """Service "Haircut" with one weekly rule. Returns (service, rule)."""
    service = storage.create_service(name="Haircut", duration_minutes=duration_minutes)
    rule = storage.create_rule(
        service_id=service.id,
        weekday=weekday,
        start_time_local=start,
        end_time_local=end,
        timezone=tz,
        capacity=capacity,
    )
    return service, rule


def make_sql_storage(url: str, busy_timeout: float = 2.0) -> SqlStorage:
    engine = make_engine(url, busy_timeout=busy_timeout)
    Base.metadata.create_all(bind=engine)
    return SqlStorage(make_session_factory(engine))


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def sql_storage(tmp_path):
    storage = make_sql_storage(f"sqlite:///{tmp_path / 'booking.db'}")
    yield storage
    storage._session_factory.kw["bind"].dispose()


@pytest.fixture(params=["memory", "sql"])
def storage(request, tmp_path):
    """Runs a test once per storage adapter."""
    if request.param == "memory":
        yield MemoryStorage()
        return
    storage = make_sql_storage(f"sqlite:///{tmp_path / 'booking.db'}")
    yield storage
    storage._session_factory.kw["bind"].dispose()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def coordinator(storage, config, clock):
    return ReservationCoordinator(storage, config=config, clock=clock)


def make_coordinator(
    storage,
    config: Optional[BookingConfig] = None,
    redis=None,
    now: datetime = NOW,
) -> ReservationCoordinator:
    return ReservationCoordinator(
        storage,
        config=config or make_config(),
        redis=redis,
        clock=lambda: now,
    )
