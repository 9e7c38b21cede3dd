"""
Storage port.

The slot calculator and the reservation coordinator only ever talk to these
two interfaces; adapters (SQLAlchemy, in-memory) live next to this module.

Bookings have no public write method on BookingStorage: they are created and
changed exclusively through reservation_scope(), which gives the caller a
LedgerTransaction holding the service's write lock for the duration of one
check-then-write unit.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Optional

from ..domain import BookingRecord, HolidayRecord, RuleRecord, ServiceRecord
from ..errors import OperationTimeoutError


class LedgerTransaction(ABC):
    """
    One atomic unit against the booking ledger for a single service.

    Reads see the latest committed state plus this transaction's own writes.
    Nothing becomes visible to other callers until the scope exits cleanly.
    """

    def __init__(self, service_id: int, deadline: float):
        self.service_id = service_id
        # time.monotonic() value after which the scope must not commit
        self.deadline = deadline

    def check_deadline(self) -> None:
        if time.monotonic() > self.deadline:
            raise OperationTimeoutError(
                f"Reservation scope for service {self.service_id} timed out"
            )

    @abstractmethod
    def get_service(self) -> Optional[ServiceRecord]: ...

    @abstractmethod
    def list_rules(self) -> list[RuleRecord]: ...

    @abstractmethod
    def is_holiday(self, day: date) -> bool: ...

    @abstractmethod
    def count_overlapping(self, start: datetime, end: datetime) -> int:
        """Count pending/confirmed bookings of the service overlapping [start, end)."""

    @abstractmethod
    def get_booking(self, booking_id: int) -> Optional[BookingRecord]: ...

    @abstractmethod
    def insert_booking(
        self,
        customer_name: str,
        customer_email: str,
        start_time: datetime,
        end_time: datetime,
        status: str,
        notes: Optional[str] = None,
    ) -> BookingRecord: ...

    @abstractmethod
    def set_booking_status(self, booking_id: int, status: str) -> BookingRecord: ...


class BookingStorage(ABC):
    """Service registry, rule store, exception store and booking ledger."""

    # ── Service registry ─────────────────────────────────────────────────

    @abstractmethod
    def create_service(
        self,
        name: str,
        duration_minutes: int,
        description: Optional[str] = None,
        price: Optional[float] = None,
        active: bool = True,
    ) -> ServiceRecord: ...

    @abstractmethod
    def get_service(self, service_id: int) -> Optional[ServiceRecord]: ...

    @abstractmethod
    def list_services(self, include_inactive: bool = False) -> list[ServiceRecord]: ...

    @abstractmethod
    def update_service(self, service_id: int, **fields) -> Optional[ServiceRecord]:
        """Update name/description/price/active. Duration is immutable."""

    @abstractmethod
    def deactivate_service(self, service_id: int) -> Optional[ServiceRecord]: ...

    # ── Rule store ───────────────────────────────────────────────────────

    @abstractmethod
    def create_rule(
        self,
        service_id: int,
        weekday: int,
        start_time_local: str,
        end_time_local: str,
        timezone: str,
        capacity: int = 1,
    ) -> RuleRecord: ...

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[RuleRecord]: ...

    @abstractmethod
    def list_rules(self, service_id: int) -> list[RuleRecord]: ...

    @abstractmethod
    def update_rule(self, rule_id: int, **fields) -> Optional[RuleRecord]: ...

    @abstractmethod
    def delete_rule(self, rule_id: int) -> bool: ...

    # ── Exception store ──────────────────────────────────────────────────

    @abstractmethod
    def create_holiday(
        self,
        service_id: int,
        holiday_date: date,
        note: Optional[str] = None,
    ) -> HolidayRecord: ...

    @abstractmethod
    def get_holiday(self, holiday_id: int) -> Optional[HolidayRecord]: ...

    @abstractmethod
    def list_holidays(
        self,
        service_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[HolidayRecord]: ...

    @abstractmethod
    def update_holiday(self, holiday_id: int, **fields) -> Optional[HolidayRecord]: ...

    @abstractmethod
    def delete_holiday(self, holiday_id: int) -> bool: ...

    # ── Booking ledger (reads) ───────────────────────────────────────────

    @abstractmethod
    def get_booking(self, booking_id: int) -> Optional[BookingRecord]: ...

    @abstractmethod
    def list_bookings(
        self,
        service_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[BookingRecord]: ...

    @abstractmethod
    def list_active_bookings(
        self,
        service_id: int,
        start: datetime,
        end: datetime,
    ) -> list[BookingRecord]:
        """Pending/confirmed bookings overlapping [start, end), ordered by start."""

    # ── Booking ledger (writes) ──────────────────────────────────────────

    @abstractmethod
    def reservation_scope(
        self,
        service_id: int,
        timeout: float,
    ) -> AbstractContextManager[LedgerTransaction]:
        """
        Open an atomic, exclusively-locked unit of work for one service.

        Commits when the block exits normally, rolls back on any exception.
        Raises OperationTimeoutError when the lock cannot be taken in time
        or the deadline passed before commit.
        """

    def ping(self) -> bool:
        return True
