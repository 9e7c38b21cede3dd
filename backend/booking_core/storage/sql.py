"""
SQLAlchemy storage adapter.

Every plain read or admin write runs in its own short session and commits
before returning, so callers always see the latest committed state.

reservation_scope() serializes writers per service:
- PostgreSQL: SELECT ... FOR UPDATE on the services row, with
  SET LOCAL lock_timeout / statement_timeout bounded by the scope timeout.
- SQLite: BEGIN IMMEDIATE (database-wide write lock) with busy_timeout
  bounded by the scope timeout.

An in-memory SQLite database lives on a single shared connection, so every
session against it (plain or locked) is serialized by a process-wide lock.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ..domain import (
    ACTIVE_STATUSES,
    BookingRecord,
    HolidayRecord,
    RuleRecord,
    ServiceRecord,
)
from ..errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    OperationTimeoutError,
    StorageError,
    ValidationError,
)
from ..models import AvailabilityRules, Bookings, Holidays, Services
from ..validation import (
    from_naive_utc,
    to_naive_utc,
    validate_duration,
    validate_rule_fields,
)
from .base import BookingStorage, LedgerTransaction

logger = logging.getLogger(__name__)

_SERVICE_FIELDS = {"name", "description", "price", "active"}
_RULE_FIELDS = {"weekday", "start_time_local", "end_time_local", "timezone", "capacity"}
_HOLIDAY_FIELDS = {"holiday_date", "note"}

# SQLSTATE codes (PostgreSQL)
_CONFLICT_CODES = {"40001", "40P01"}  # serialization_failure, deadlock_detected
_TIMEOUT_CODES = {"55P03", "57014"}  # lock_not_available, query_canceled


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _is_sqlite_locked(exc: DBAPIError) -> bool:
    return "database is locked" in str(exc.orig).lower()


def translate_db_error(exc: DBAPIError) -> BookingError | DBAPIError:
    """Map a driver error onto the booking error taxonomy."""
    code = _sqlstate(exc)
    if code in _CONFLICT_CODES or _is_sqlite_locked(exc):
        return ConflictError("Concurrent reservation conflict, re-check availability")
    if code in _TIMEOUT_CODES:
        return OperationTimeoutError("Database operation timed out")
    if isinstance(exc, IntegrityError):
        return ValidationError(f"Constraint violation: {exc.orig}")
    if isinstance(exc, (OperationalError, InterfaceError)) or exc.connection_invalidated:
        return StorageError(f"Database unavailable: {exc.orig}")
    return exc


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Row → record ─────────────────────────────────────────────────────────


def _service_record(obj: Services) -> ServiceRecord:
    return ServiceRecord(
        id=obj.id,
        name=obj.name,
        duration_minutes=obj.duration_minutes,
        active=bool(obj.is_active),
        description=obj.description,
        price=obj.price,
        created_at=from_naive_utc(obj.created_at) if obj.created_at else None,
    )


def _rule_record(obj: AvailabilityRules) -> RuleRecord:
    return RuleRecord(
        id=obj.id,
        service_id=obj.service_id,
        weekday=obj.weekday,
        start_time_local=obj.start_time_local,
        end_time_local=obj.end_time_local,
        timezone=obj.timezone,
        capacity=obj.capacity,
        created_at=from_naive_utc(obj.created_at) if obj.created_at else None,
    )


def _holiday_record(obj: Holidays) -> HolidayRecord:
    return HolidayRecord(
        id=obj.id,
        service_id=obj.service_id,
        holiday_date=obj.holiday_date,
        note=obj.note,
        created_at=from_naive_utc(obj.created_at) if obj.created_at else None,
    )


def _booking_record(obj: Bookings) -> BookingRecord:
    return BookingRecord(
        id=obj.id,
        service_id=obj.service_id,
        customer_name=obj.customer_name,
        customer_email=obj.customer_email,
        start_time=from_naive_utc(obj.start_time),
        end_time=from_naive_utc(obj.end_time),
        status=obj.status,
        notes=obj.notes,
        created_at=from_naive_utc(obj.created_at) if obj.created_at else None,
        updated_at=from_naive_utc(obj.updated_at) if obj.updated_at else None,
    )


def _active_overlap_query(service_id: int, start: datetime, end: datetime):
    return (
        Bookings.service_id == service_id,
        Bookings.status.in_(ACTIVE_STATUSES),
        Bookings.start_time < to_naive_utc(end),
        Bookings.end_time > to_naive_utc(start),
    )


# ── Ledger transaction ───────────────────────────────────────────────────


class SqlLedgerTransaction(LedgerTransaction):

    def __init__(
        self,
        session: Session,
        service_id: int,
        deadline: float,
        service: Optional[ServiceRecord],
    ):
        super().__init__(service_id, deadline)
        self.session = session
        self._service = service

    def get_service(self) -> Optional[ServiceRecord]:
        return self._service

    def list_rules(self) -> list[RuleRecord]:
        rows = self.session.scalars(
            select(AvailabilityRules)
            .where(AvailabilityRules.service_id == self.service_id)
            .order_by(AvailabilityRules.weekday, AvailabilityRules.start_time_local)
        ).all()
        return [_rule_record(r) for r in rows]

    def is_holiday(self, day: date) -> bool:
        found = self.session.scalar(
            select(Holidays.id)
            .where(Holidays.service_id == self.service_id, Holidays.holiday_date == day)
            .limit(1)
        )
        return found is not None

    def count_overlapping(self, start: datetime, end: datetime) -> int:
        return self.session.scalar(
            select(func.count(Bookings.id)).where(
                *_active_overlap_query(self.service_id, start, end)
            )
        )

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        obj = self.session.get(Bookings, booking_id)
        return _booking_record(obj) if obj else None

    def insert_booking(
        self,
        customer_name: str,
        customer_email: str,
        start_time: datetime,
        end_time: datetime,
        status: str,
        notes: Optional[str] = None,
    ) -> BookingRecord:
        now = _utcnow_naive()
        obj = Bookings(
            service_id=self.service_id,
            customer_name=customer_name,
            customer_email=customer_email,
            start_time=to_naive_utc(start_time),
            end_time=to_naive_utc(end_time),
            status=status,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.session.add(obj)
        self.session.flush()
        return _booking_record(obj)

    def set_booking_status(self, booking_id: int, status: str) -> BookingRecord:
        obj = self.session.get(Bookings, booking_id)
        if obj is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        obj.status = status
        obj.updated_at = _utcnow_naive()
        self.session.flush()
        return _booking_record(obj)


# ── Storage ──────────────────────────────────────────────────────────────


class SqlStorage(BookingStorage):

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        bind = session_factory.kw["bind"]
        self.dialect = bind.dialect.name
        # In-memory SQLite is one connection shared by every session (StaticPool);
        # sessions on it must take turns or they interleave statements on it.
        self._connection_lock: Optional[threading.RLock] = None
        if self.dialect == "sqlite" and bind.url.database in (None, "", ":memory:"):
            self._connection_lock = threading.RLock()

    @contextmanager
    def _connection_turn(self, timeout: float = -1) -> Iterator[None]:
        if self._connection_lock is None:
            yield
            return
        if not self._connection_lock.acquire(timeout=timeout):
            raise OperationTimeoutError("Timed out waiting for the shared SQLite connection")
        try:
            yield
        finally:
            self._connection_lock.release()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._connection_turn():
            with self._committing_session() as session:
                yield session

    @contextmanager
    def _committing_session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except DBAPIError as exc:
            session.rollback()
            translated = translate_db_error(exc)
            if translated is exc:
                raise
            raise translated from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        with self._session() as session:
            return session.execute(text("SELECT 1")).scalar() == 1

    @staticmethod
    def _require_service(session: Session, service_id: int) -> None:
        if session.get(Services, service_id) is None:
            raise NotFoundError(f"Service {service_id} not found")

    # ── Service registry ─────────────────────────────────────────────────

    def create_service(self, name, duration_minutes, description=None, price=None, active=True):
        validate_duration(duration_minutes)
        with self._session() as session:
            obj = Services(
                name=name,
                duration_minutes=duration_minutes,
                description=description,
                price=price,
                is_active=active,
            )
            session.add(obj)
            session.flush()
            session.refresh(obj)
            return _service_record(obj)

    def get_service(self, service_id):
        with self._session() as session:
            obj = session.get(Services, service_id)
            return _service_record(obj) if obj else None

    def list_services(self, include_inactive=False):
        with self._session() as session:
            query = select(Services).order_by(Services.id)
            if not include_inactive:
                query = query.where(Services.is_active.is_(True))
            return [_service_record(s) for s in session.scalars(query).all()]

    def update_service(self, service_id, **fields):
        unknown = set(fields) - _SERVICE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update service fields: {sorted(unknown)}")
        with self._session() as session:
            obj = session.get(Services, service_id)
            if obj is None:
                return None
            for field, value in fields.items():
                setattr(obj, "is_active" if field == "active" else field, value)
            session.flush()
            return _service_record(obj)

    def deactivate_service(self, service_id):
        return self.update_service(service_id, active=False)

    # ── Rule store ───────────────────────────────────────────────────────

    def create_rule(self, service_id, weekday, start_time_local, end_time_local, timezone, capacity=1):
        validate_rule_fields(weekday, start_time_local, end_time_local, timezone, capacity)
        with self._session() as session:
            self._require_service(session, service_id)
            obj = AvailabilityRules(
                service_id=service_id,
                weekday=weekday,
                start_time_local=start_time_local,
                end_time_local=end_time_local,
                timezone=timezone,
                capacity=capacity,
            )
            session.add(obj)
            session.flush()
            session.refresh(obj)
            return _rule_record(obj)

    def get_rule(self, rule_id):
        with self._session() as session:
            obj = session.get(AvailabilityRules, rule_id)
            return _rule_record(obj) if obj else None

    def list_rules(self, service_id):
        with self._session() as session:
            rows = session.scalars(
                select(AvailabilityRules)
                .where(AvailabilityRules.service_id == service_id)
                .order_by(
                    AvailabilityRules.weekday,
                    AvailabilityRules.start_time_local,
                    AvailabilityRules.id,
                )
            ).all()
            return [_rule_record(r) for r in rows]

    def update_rule(self, rule_id, **fields):
        unknown = set(fields) - _RULE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update rule fields: {sorted(unknown)}")
        with self._session() as session:
            obj = session.get(AvailabilityRules, rule_id)
            if obj is None:
                return None
            for field, value in fields.items():
                setattr(obj, field, value)
            validate_rule_fields(
                obj.weekday, obj.start_time_local, obj.end_time_local,
                obj.timezone, obj.capacity,
            )
            session.flush()
            return _rule_record(obj)

    def delete_rule(self, rule_id):
        with self._session() as session:
            obj = session.get(AvailabilityRules, rule_id)
            if obj is None:
                return False
            session.delete(obj)
            return True

    # ── Exception store ──────────────────────────────────────────────────

    def create_holiday(self, service_id, holiday_date, note=None):
        with self._session() as session:
            self._require_service(session, service_id)
            obj = Holidays(service_id=service_id, holiday_date=holiday_date, note=note)
            session.add(obj)
            session.flush()
            session.refresh(obj)
            return _holiday_record(obj)

    def get_holiday(self, holiday_id):
        with self._session() as session:
            obj = session.get(Holidays, holiday_id)
            return _holiday_record(obj) if obj else None

    def list_holidays(self, service_id, date_from=None, date_to=None):
        with self._session() as session:
            query = select(Holidays).where(Holidays.service_id == service_id)
            if date_from is not None:
                query = query.where(Holidays.holiday_date >= date_from)
            if date_to is not None:
                query = query.where(Holidays.holiday_date <= date_to)
            query = query.order_by(Holidays.holiday_date, Holidays.id)
            return [_holiday_record(h) for h in session.scalars(query).all()]

    def update_holiday(self, holiday_id, **fields):
        unknown = set(fields) - _HOLIDAY_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update holiday fields: {sorted(unknown)}")
        with self._session() as session:
            obj = session.get(Holidays, holiday_id)
            if obj is None:
                return None
            for field, value in fields.items():
                setattr(obj, field, value)
            session.flush()
            return _holiday_record(obj)

    def delete_holiday(self, holiday_id):
        with self._session() as session:
            obj = session.get(Holidays, holiday_id)
            if obj is None:
                return False
            session.delete(obj)
            return True

    # ── Booking ledger ───────────────────────────────────────────────────

    def get_booking(self, booking_id):
        with self._session() as session:
            obj = session.get(Bookings, booking_id)
            return _booking_record(obj) if obj else None

    def list_bookings(self, service_id=None, status=None):
        with self._session() as session:
            query = select(Bookings)
            if service_id is not None:
                query = query.where(Bookings.service_id == service_id)
            if status is not None:
                query = query.where(Bookings.status == status)
            query = query.order_by(Bookings.start_time, Bookings.id)
            return [_booking_record(b) for b in session.scalars(query).all()]

    def list_active_bookings(self, service_id, start, end):
        with self._session() as session:
            rows = session.scalars(
                select(Bookings)
                .where(*_active_overlap_query(service_id, start, end))
                .order_by(Bookings.start_time, Bookings.id)
            ).all()
            return [_booking_record(b) for b in rows]

    def _begin_locked(self, session: Session, service_id: int, timeout: float) -> Optional[ServiceRecord]:
        """Start the transaction and take the per-service write lock."""
        timeout_ms = max(int(timeout * 1000), 1)

        if self.dialect == "sqlite":
            options = {"sqlite_begin": "IMMEDIATE", "sqlite_busy_timeout_ms": timeout_ms}
            try:
                session.connection(execution_options=options)
            except OperationalError as exc:
                if _is_sqlite_locked(exc):
                    raise OperationTimeoutError(
                        f"Timed out waiting for the booking lock of service {service_id}"
                    ) from exc
                raise
        elif self.dialect == "postgresql":
            session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
            session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

        obj = session.execute(
            select(Services).where(Services.id == service_id).with_for_update()
        ).scalar_one_or_none()
        return _service_record(obj) if obj else None

    @contextmanager
    def reservation_scope(self, service_id: int, timeout: float) -> Iterator[SqlLedgerTransaction]:
        deadline = time.monotonic() + timeout
        with self._connection_turn(max(timeout, 0)):
            with self._locked_session(service_id, deadline) as tx:
                yield tx

    @contextmanager
    def _locked_session(self, service_id: int, deadline: float) -> Iterator[SqlLedgerTransaction]:
        session = self._session_factory()
        try:
            service = self._begin_locked(session, service_id, max(deadline - time.monotonic(), 0))
            tx = SqlLedgerTransaction(session, service_id, deadline, service)
            yield tx
            tx.check_deadline()
            session.commit()
        except DBAPIError as exc:
            session.rollback()
            translated = translate_db_error(exc)
            if translated is exc:
                raise
            logger.warning(
                "Reservation scope for service_id=%s failed: %s", service_id, translated
            )
            raise translated from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()
