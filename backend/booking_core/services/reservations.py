# backend/booking_core/services/reservations.py
"""
Reservation coordinator: the only writer of bookings.

reserve() re-validates the requested interval against the same rules,
holidays and bookings the slot calculator uses, and does the capacity
check and the insert inside one reservation scope of the storage port
(per-service exclusive lock, single transaction, request-scoped deadline).

Outcomes:
- ValidationError        malformed interval (naive datetimes, start >= end)
- NotFoundError          unknown service / booking
- SlotNotAvailableError  inactive service, too early, outside rule hours, holiday
- CapacityExceededError  slot already full
- ConflictError          storage reported a concurrent write conflict
- OperationTimeoutError  lock or deadline exceeded, nothing was written
- StorageError           transient fault that survived the bounded retry

Notifications are not sent from here.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from redis import Redis

from ..domain import (
    CANCELED,
    CONFIRMED,
    PENDING,
    BookingRecord,
    Customer,
    check_transition,
)
from ..errors import (
    CapacityExceededError,
    NotFoundError,
    OperationTimeoutError,
    SlotNotAvailableError,
    ValidationError,
)
from ..storage import BookingStorage, LedgerTransaction
from ..validation import ensure_aware_utc
from .retry import call_with_storage_retry
from .slots.calculator import matching_windows
from .slots.config import BookingConfig, get_booking_config
from .slots.invalidator import invalidate_service_cache

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReservationCoordinator:

    def __init__(
        self,
        storage: BookingStorage,
        config: BookingConfig | None = None,
        redis: Redis | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.storage = storage
        self.config = config or get_booking_config()
        self.redis = redis
        self.clock = clock or _utcnow

    # ── Public API ───────────────────────────────────────────────────────

    def reserve(
        self,
        service_id: int,
        start: datetime,
        end: datetime,
        customer: Customer,
    ) -> BookingRecord:
        """Atomically check capacity for [start, end) and insert a booking."""
        start = ensure_aware_utc(start, "start")
        end = ensure_aware_utc(end, "end")
        if start >= end:
            raise ValidationError("start must be before end")

        deadline = self._deadline()
        booking = self._retry(deadline, self._reserve_once, service_id, start, end, customer, deadline)

        logger.info(
            "Booking reserved: booking_id=%s service_id=%s start=%s end=%s status=%s",
            booking.id, service_id, start.isoformat(), end.isoformat(), booking.status,
        )
        invalidate_service_cache(self.redis, service_id)
        return booking

    def cancel(self, booking_id: int) -> Optional[BookingRecord]:
        """
        Cancel a booking.

        Idempotent: an already canceled booking is returned unchanged and an
        unknown booking id returns None.
        """
        deadline = self._deadline()
        existing = self._retry(deadline, self.storage.get_booking, booking_id)
        if existing is None:
            logger.info("Cancel ignored, booking not found: booking_id=%s", booking_id)
            return None
        if existing.status == CANCELED:
            return existing

        booking = self._retry(
            deadline, self._transition_once, existing.service_id, booking_id, CANCELED, deadline
        )
        if booking is None:
            return None

        logger.info("Booking canceled: booking_id=%s service_id=%s", booking_id, booking.service_id)
        invalidate_service_cache(self.redis, booking.service_id)
        return booking

    def confirm(self, booking_id: int) -> BookingRecord:
        """Approve a pending booking. Confirming a confirmed booking is a no-op."""
        deadline = self._deadline()
        existing = self._retry(deadline, self.storage.get_booking, booking_id)
        if existing is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if existing.status == CONFIRMED:
            return existing
        check_transition(existing.status, CONFIRMED)

        booking = self._retry(
            deadline, self._transition_once, existing.service_id, booking_id, CONFIRMED, deadline
        )
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")

        logger.info("Booking confirmed: booking_id=%s service_id=%s", booking_id, booking.service_id)
        invalidate_service_cache(self.redis, booking.service_id)
        return booking

    # ── Units of work ────────────────────────────────────────────────────

    def _reserve_once(
        self,
        service_id: int,
        start: datetime,
        end: datetime,
        customer: Customer,
        deadline: float,
    ) -> BookingRecord:
        with self.storage.reservation_scope(service_id, self._remaining(deadline)) as tx:
            # Step 1: Service and interval validity
            self._check_bookable(tx, service_id, start, end)

            # Step 2: Capacity of the best matching rule
            capacity = self._matching_capacity(tx, start, end)
            booked = tx.count_overlapping(start, end)
            if booked >= capacity:
                raise CapacityExceededError(
                    f"Slot {start.isoformat()} - {end.isoformat()} is full "
                    f"({booked}/{capacity})"
                )

            # Step 3: Insert
            tx.check_deadline()
            return tx.insert_booking(
                customer_name=customer.name,
                customer_email=customer.email,
                start_time=start,
                end_time=end,
                status=PENDING if self.config.approval_required else CONFIRMED,
                notes=customer.notes,
            )

    def _transition_once(
        self,
        service_id: int,
        booking_id: int,
        target: str,
        deadline: float,
    ) -> Optional[BookingRecord]:
        with self.storage.reservation_scope(service_id, self._remaining(deadline)) as tx:
            current = tx.get_booking(booking_id)
            if current is None:
                return None
            if current.status == target:
                return current
            check_transition(current.status, target)
            tx.check_deadline()
            return tx.set_booking_status(booking_id, target)

    # ── Checks ───────────────────────────────────────────────────────────

    def _check_bookable(
        self,
        tx: LedgerTransaction,
        service_id: int,
        start: datetime,
        end: datetime,
    ) -> None:
        service = tx.get_service()
        if service is None:
            raise NotFoundError(f"Service {service_id} not found")
        if not service.active:
            raise SlotNotAvailableError(f"Service {service_id} is not accepting bookings")

        earliest = self.clock() + timedelta(minutes=self.config.min_advance_minutes)
        if start < earliest:
            raise SlotNotAvailableError("Slot starts too soon or is in the past")

    def _matching_capacity(self, tx: LedgerTransaction, start: datetime, end: datetime) -> int:
        """
        Largest capacity among rule windows containing [start, end) on a non-holiday date.

        Bookings are not tied to a rule, so the recount is the same for every
        candidate; the request is admissible if any containing window has room.
        """
        matches = list(matching_windows(tx.list_rules(), start, end))
        if not matches:
            raise SlotNotAvailableError("Requested time is outside business hours")

        open_rules = [rule for rule, day in matches if not tx.is_holiday(day)]
        if not open_rules:
            raise SlotNotAvailableError("Requested date is a holiday")

        return max(rule.capacity for rule in open_rules)

    # ── Deadline ─────────────────────────────────────────────────────────

    def _deadline(self) -> float:
        """One deadline per public call, shared by every attempt and backoff."""
        return time.monotonic() + self.config.request_timeout_seconds

    @staticmethod
    def _remaining(deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise OperationTimeoutError("Request timed out before the reservation scope opened")
        return remaining

    def _retry(self, deadline: float, fn, *args):
        return call_with_storage_retry(self.config, fn, *args, deadline=deadline)
