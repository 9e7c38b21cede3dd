# backend/booking_core/services/slots/calculator.py
"""
Slot computation.

Produces the offerable slots of one service over a date range:

✓ recurring weekly rules (one window per matching date, per rule)
✓ holidays (the whole date is skipped)
✓ pending/confirmed bookings (subtracted per slot)

Rule-local times are converted to UTC per date, so DST transitions shift
windows correctly. Rules never pool capacity: two overlapping rules give
two independent slot sets.

Read-only; safe to call concurrently.
"""

from bisect import bisect_left
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

from ...domain import BookingRecord, RuleRecord, Slot, sunday_based_weekday
from ...errors import NotFoundError, ValidationError
from ...storage import BookingStorage
from ...validation import ensure_aware_utc, load_timezone, parse_local_time
from .config import BookingConfig, get_booking_config


def compute_slots(
    storage: BookingStorage,
    service_id: int,
    from_date: date,
    to_date: date,
    slot_length: Optional[int] = None,
    config: BookingConfig | None = None,
) -> list[Slot]:
    """
    Compute offerable slots for [from_date, to_date] (inclusive).

    Args:
        slot_length: Slot length in minutes, defaults to the service duration

    Returns:
        Slots with capacity_remaining > 0, ordered by start.
    """
    config = config or get_booking_config()

    # Step 1: Validate request
    if from_date > to_date:
        raise ValidationError("from date must not be after to date")
    if (to_date - from_date).days + 1 > config.max_range_days:
        raise ValidationError(f"Date range cannot exceed {config.max_range_days} days")
    if slot_length is not None and slot_length <= 0:
        raise ValidationError("slot_length must be a positive number of minutes")

    # Step 2: Service must exist and be active
    service = storage.get_service(service_id)
    if service is None or not service.active:
        raise NotFoundError(f"Service {service_id} not found")

    step = timedelta(minutes=slot_length or service.duration_minutes)

    # Step 3: Expand rules into concrete windows, skipping holidays
    rules = storage.list_rules(service_id)
    holidays = {
        h.holiday_date for h in storage.list_holidays(service_id, from_date, to_date)
    }

    windows: list[tuple[RuleRecord, datetime, datetime]] = []
    for day in get_dates(from_date, to_date):
        if day in holidays:
            continue
        for rule in rules:
            if not rule_applies(rule, day):
                continue
            window_start, window_end = rule_window(rule, day)
            windows.append((rule, window_start, window_end))

    if not windows:
        return []

    # Step 4: Load bookings once for the whole UTC span
    span_start = min(w[1] for w in windows)
    span_end = max(w[2] for w in windows)
    bookings = storage.list_active_bookings(service_id, span_start, span_end)
    starts = [b.start_time for b in bookings]

    # Step 5: Partition windows and subtract consumed capacity
    slots: list[Slot] = []
    for rule, window_start, window_end in windows:
        for slot_start, slot_end in split_window(window_start, window_end, step):
            booked = _count_overlapping(bookings, starts, slot_start, slot_end)
            remaining = rule.capacity - booked
            if remaining > 0:
                slots.append(Slot(
                    start=slot_start,
                    end=slot_end,
                    capacity_remaining=remaining,
                    rule_id=rule.id,
                ))

    slots.sort(key=lambda s: (s.start, s.end, s.rule_id))
    return slots


# ── Rule windows ─────────────────────────────────────────────────────────


def rule_applies(rule: RuleRecord, day: date) -> bool:
    """Rule weekday (0 = Sunday) matches the calendar date in the rule's timezone."""
    return rule.weekday == sunday_based_weekday(day)


def rule_window(rule: RuleRecord, day: date) -> tuple[datetime, datetime]:
    """
    Absolute UTC window of a rule on a local calendar date.

    Local times falling into a DST gap or overlap resolve with fold=0.
    """
    tz = load_timezone(rule.timezone)
    start_local = datetime.combine(day, parse_local_time(rule.start_time_local), tzinfo=tz)
    end_local = datetime.combine(day, parse_local_time(rule.end_time_local), tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def split_window(
    window_start: datetime,
    window_end: datetime,
    step: timedelta,
) -> Iterator[tuple[datetime, datetime]]:
    """Consecutive [start, end) slots; a trailing remainder shorter than step is dropped."""
    t = window_start
    while t + step <= window_end:
        yield t, t + step
        t += step


def matching_windows(
    rules: list[RuleRecord],
    start: datetime,
    end: datetime,
) -> Iterator[tuple[RuleRecord, date]]:
    """
    Rules whose window fully contains [start, end), with the local date of that window.

    Windows never cross local midnight, so the only candidate date for a rule
    is the local date of `start` in the rule's timezone.
    """
    start = ensure_aware_utc(start, "start")
    end = ensure_aware_utc(end, "end")
    for rule in rules:
        day = start.astimezone(load_timezone(rule.timezone)).date()
        if not rule_applies(rule, day):
            continue
        window_start, window_end = rule_window(rule, day)
        if window_start <= start and end <= window_end:
            yield rule, day


# ── Helpers ──────────────────────────────────────────────────────────────


def get_dates(date_start: date, date_end: date) -> list[date]:
    """List of dates in [date_start, date_end]."""
    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)
    return dates


def _count_overlapping(
    bookings: list[BookingRecord],
    starts: list[datetime],
    slot_start: datetime,
    slot_end: datetime,
) -> int:
    """Bookings overlapping [slot_start, slot_end); `bookings` is sorted by start."""
    # Only bookings starting before slot_end can overlap
    candidates = bookings[:bisect_left(starts, slot_end)]
    return sum(1 for b in candidates if b.end_time > slot_start)
