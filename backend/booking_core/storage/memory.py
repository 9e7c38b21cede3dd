"""
In-process storage adapter.

Used for tests and single-process deployments (STORAGE_BACKEND=memory).
Each service has its own lock; reservation scopes stage their writes and
apply them only when the block exits without an exception.
"""

from __future__ import annotations

import itertools
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterator, Optional

from ..domain import (
    ACTIVE_STATUSES,
    BookingRecord,
    HolidayRecord,
    RuleRecord,
    ServiceRecord,
)
from ..errors import NotFoundError, OperationTimeoutError, ValidationError
from ..validation import ensure_aware_utc, validate_duration, validate_rule_fields
from .base import BookingStorage, LedgerTransaction

_SERVICE_FIELDS = {"name", "description", "price", "active"}
_RULE_FIELDS = {"weekday", "start_time_local", "end_time_local", "timezone", "capacity"}
_HOLIDAY_FIELDS = {"holiday_date", "note"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryLedgerTransaction(LedgerTransaction):

    def __init__(self, storage: "MemoryStorage", service_id: int, deadline: float):
        super().__init__(service_id, deadline)
        self._storage = storage
        self._staged: dict[int, BookingRecord] = {}

    def _current(self, booking_id: int) -> Optional[BookingRecord]:
        if booking_id in self._staged:
            return self._staged[booking_id]
        return self._storage._bookings.get(booking_id)

    def get_service(self) -> Optional[ServiceRecord]:
        return self._storage.get_service(self.service_id)

    def list_rules(self) -> list[RuleRecord]:
        return self._storage.list_rules(self.service_id)

    def is_holiday(self, day: date) -> bool:
        return bool(self._storage.list_holidays(self.service_id, day, day))

    def count_overlapping(self, start: datetime, end: datetime) -> int:
        with self._storage._lock:
            ids = set(self._storage._bookings) | set(self._staged)
        count = 0
        for booking_id in ids:
            booking = self._current(booking_id)
            if (
                booking.service_id == self.service_id
                and booking.is_active
                and booking.overlaps(start, end)
            ):
                count += 1
        return count

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        return self._current(booking_id)

    def insert_booking(
        self,
        customer_name: str,
        customer_email: str,
        start_time: datetime,
        end_time: datetime,
        status: str,
        notes: Optional[str] = None,
    ) -> BookingRecord:
        now = _utcnow()
        booking = BookingRecord(
            id=self._storage._next_id("bookings"),
            service_id=self.service_id,
            customer_name=customer_name,
            customer_email=customer_email,
            start_time=ensure_aware_utc(start_time, "start_time"),
            end_time=ensure_aware_utc(end_time, "end_time"),
            status=status,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self._staged[booking.id] = booking
        return booking

    def set_booking_status(self, booking_id: int, status: str) -> BookingRecord:
        booking = self._current(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        updated = replace(booking, status=status, updated_at=_utcnow())
        self._staged[booking_id] = updated
        return updated

    def commit(self) -> None:
        with self._storage._lock:
            self._storage._bookings.update(self._staged)


class MemoryStorage(BookingStorage):

    def __init__(self):
        self._lock = threading.RLock()
        self._service_locks: dict[int, threading.Lock] = {}
        self._counters = {
            name: itertools.count(1)
            for name in ("services", "rules", "holidays", "bookings")
        }
        self._services: dict[int, ServiceRecord] = {}
        self._rules: dict[int, RuleRecord] = {}
        self._holidays: dict[int, HolidayRecord] = {}
        self._bookings: dict[int, BookingRecord] = {}

    def _next_id(self, table: str) -> int:
        with self._lock:
            return next(self._counters[table])

    def _require_service(self, service_id: int) -> None:
        if service_id not in self._services:
            raise NotFoundError(f"Service {service_id} not found")

    # ── Service registry ─────────────────────────────────────────────────

    def create_service(self, name, duration_minutes, description=None, price=None, active=True):
        validate_duration(duration_minutes)
        with self._lock:
            service = ServiceRecord(
                id=self._next_id("services"),
                name=name,
                duration_minutes=duration_minutes,
                active=active,
                description=description,
                price=price,
                created_at=_utcnow(),
            )
            self._services[service.id] = service
            return service

    def get_service(self, service_id):
        with self._lock:
            return self._services.get(service_id)

    def list_services(self, include_inactive=False):
        with self._lock:
            services = sorted(self._services.values(), key=lambda s: s.id)
        if include_inactive:
            return services
        return [s for s in services if s.active]

    def update_service(self, service_id, **fields):
        unknown = set(fields) - _SERVICE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update service fields: {sorted(unknown)}")
        with self._lock:
            service = self._services.get(service_id)
            if service is None:
                return None
            service = replace(service, **fields)
            self._services[service_id] = service
            return service

    def deactivate_service(self, service_id):
        return self.update_service(service_id, active=False)

    # ── Rule store ───────────────────────────────────────────────────────

    def create_rule(self, service_id, weekday, start_time_local, end_time_local, timezone, capacity=1):
        validate_rule_fields(weekday, start_time_local, end_time_local, timezone, capacity)
        with self._lock:
            self._require_service(service_id)
            rule = RuleRecord(
                id=self._next_id("rules"),
                service_id=service_id,
                weekday=weekday,
                start_time_local=start_time_local,
                end_time_local=end_time_local,
                timezone=timezone,
                capacity=capacity,
                created_at=_utcnow(),
            )
            self._rules[rule.id] = rule
            return rule

    def get_rule(self, rule_id):
        with self._lock:
            return self._rules.get(rule_id)

    def list_rules(self, service_id):
        with self._lock:
            rules = [r for r in self._rules.values() if r.service_id == service_id]
        return sorted(rules, key=lambda r: (r.weekday, r.start_time_local, r.id))

    def update_rule(self, rule_id, **fields):
        unknown = set(fields) - _RULE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update rule fields: {sorted(unknown)}")
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                return None
            rule = replace(rule, **fields)
            validate_rule_fields(
                rule.weekday, rule.start_time_local, rule.end_time_local,
                rule.timezone, rule.capacity,
            )
            self._rules[rule_id] = rule
            return rule

    def delete_rule(self, rule_id):
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    # ── Exception store ──────────────────────────────────────────────────

    def create_holiday(self, service_id, holiday_date, note=None):
        with self._lock:
            self._require_service(service_id)
            holiday = HolidayRecord(
                id=self._next_id("holidays"),
                service_id=service_id,
                holiday_date=holiday_date,
                note=note,
                created_at=_utcnow(),
            )
            self._holidays[holiday.id] = holiday
            return holiday

    def get_holiday(self, holiday_id):
        with self._lock:
            return self._holidays.get(holiday_id)

    def list_holidays(self, service_id, date_from=None, date_to=None):
        with self._lock:
            holidays = [h for h in self._holidays.values() if h.service_id == service_id]
        if date_from is not None:
            holidays = [h for h in holidays if h.holiday_date >= date_from]
        if date_to is not None:
            holidays = [h for h in holidays if h.holiday_date <= date_to]
        return sorted(holidays, key=lambda h: (h.holiday_date, h.id))

    def update_holiday(self, holiday_id, **fields):
        unknown = set(fields) - _HOLIDAY_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update holiday fields: {sorted(unknown)}")
        with self._lock:
            holiday = self._holidays.get(holiday_id)
            if holiday is None:
                return None
            holiday = replace(holiday, **fields)
            self._holidays[holiday_id] = holiday
            return holiday

    def delete_holiday(self, holiday_id):
        with self._lock:
            return self._holidays.pop(holiday_id, None) is not None

    # ── Booking ledger ───────────────────────────────────────────────────

    def get_booking(self, booking_id):
        with self._lock:
            return self._bookings.get(booking_id)

    def list_bookings(self, service_id=None, status=None):
        with self._lock:
            bookings = list(self._bookings.values())
        if service_id is not None:
            bookings = [b for b in bookings if b.service_id == service_id]
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        return sorted(bookings, key=lambda b: (b.start_time, b.id))

    def list_active_bookings(self, service_id, start, end):
        with self._lock:
            bookings = [
                b for b in self._bookings.values()
                if b.service_id == service_id
                and b.status in ACTIVE_STATUSES
                and b.overlaps(start, end)
            ]
        return sorted(bookings, key=lambda b: (b.start_time, b.id))

    def _service_lock(self, service_id: int) -> threading.Lock:
        with self._lock:
            # Unknown ids get a throwaway lock; only registered services are tracked
            if service_id not in self._services:
                return threading.Lock()
            return self._service_locks.setdefault(service_id, threading.Lock())

    @contextmanager
    def reservation_scope(self, service_id: int, timeout: float) -> Iterator[MemoryLedgerTransaction]:
        deadline = time.monotonic() + timeout
        lock = self._service_lock(service_id)
        if not lock.acquire(timeout=max(timeout, 0)):
            raise OperationTimeoutError(
                f"Timed out waiting for the booking lock of service {service_id}"
            )
        try:
            tx = MemoryLedgerTransaction(self, service_id, deadline)
            yield tx
            tx.check_deadline()
            tx.commit()
        finally:
            lock.release()
