"""
Domain records shared by the storage adapters, the slot calculator and the
reservation coordinator.

Records are immutable snapshots: adapters build new ones on every read, so a
caller can never mutate stored state through them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .errors import BookingStateError


PENDING = "pending"
CONFIRMED = "confirmed"
CANCELED = "canceled"

BOOKING_STATUSES = (PENDING, CONFIRMED, CANCELED)

# Both states hold capacity: an unapproved booking still blocks double-booking
ACTIVE_STATUSES = (PENDING, CONFIRMED)

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    PENDING: (CONFIRMED, CANCELED),
    CONFIRMED: (CANCELED,),
    CANCELED: (),
}

# 0 = Sunday ... 6 = Saturday
WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def sunday_based_weekday(d: date) -> int:
    """Weekday of a calendar date with Sunday as 0."""
    return (d.weekday() + 1) % 7


def check_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, ()):
        raise BookingStateError(
            f"Cannot change booking status from {current!r} to {target!r}"
        )


@dataclass(frozen=True)
class ServiceRecord:
    id: int
    name: str
    duration_minutes: int
    active: bool = True
    description: Optional[str] = None
    price: Optional[float] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RuleRecord:
    id: int
    service_id: int
    weekday: int
    start_time_local: str
    end_time_local: str
    timezone: str
    capacity: int
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class HolidayRecord:
    id: int
    service_id: int
    holiday_date: date
    note: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class BookingRecord:
    id: int
    service_id: int
    customer_name: str
    customer_email: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time < end and self.end_time > start


@dataclass(frozen=True)
class Customer:
    name: str
    email: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class Slot:
    """A bookable sub-interval of one rule window (UTC instants)."""
    start: datetime
    end: datetime
    capacity_remaining: int
    rule_id: int

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "capacity_remaining": self.capacity_remaining,
            "rule_id": self.rule_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Slot":
        return cls(
            start=datetime.fromisoformat(data["start"]),
            end=datetime.fromisoformat(data["end"]),
            capacity_remaining=int(data["capacity_remaining"]),
            rule_id=int(data["rule_id"]),
        )
