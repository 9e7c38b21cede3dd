"""Tests for slot computation."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from booking_core.domain import RuleRecord
from booking_core.errors import NotFoundError, ValidationError
from booking_core.services.slots import compute_slots, rule_window
from booking_core.services.slots.calculator import split_window
from tests.conftest import (
    MONDAY,
    MONDAY_WEEKDAY,
    make_config,
    make_coordinator,
    make_customer,
    seed_haircut,
    utc,
)


class TestScenarioA:
    def test_monday_morning_yields_six_slots(self, storage, config):
        service, _ = seed_haircut(storage)
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert [s.start for s in slots] == [
            utc(MONDAY, 9, 0),
            utc(MONDAY, 9, 30),
            utc(MONDAY, 10, 0),
            utc(MONDAY, 10, 30),
            utc(MONDAY, 11, 0),
            utc(MONDAY, 11, 30),
        ]

    def test_slots_have_service_duration(self, storage, config):
        service, _ = seed_haircut(storage)
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert all(s.end - s.start == timedelta(minutes=30) for s in slots)

    def test_full_capacity_remaining(self, storage, config):
        service, rule = seed_haircut(storage)
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert all(s.capacity_remaining == 1 for s in slots)
        assert all(s.rule_id == rule.id for s in slots)

    def test_other_days_of_week_are_empty(self, storage, config):
        service, _ = seed_haircut(storage)
        tuesday = MONDAY + timedelta(days=1)
        sunday = MONDAY + timedelta(days=6)
        assert compute_slots(storage, service.id, tuesday, sunday, config=config) == []

    def test_every_monday_in_range(self, storage, config):
        service, _ = seed_haircut(storage)
        slots = compute_slots(
            storage, service.id, MONDAY, MONDAY + timedelta(days=14), config=config
        )
        days = sorted({s.start.date() for s in slots})
        assert days == [MONDAY, MONDAY + timedelta(days=7), MONDAY + timedelta(days=14)]
        assert len(slots) == 18


class TestHolidays:
    def test_holiday_removes_all_slots_of_date(self, storage, config):
        service, _ = seed_haircut(storage)
        storage.create_holiday(service.id, MONDAY, note="Closed")
        assert compute_slots(storage, service.id, MONDAY, MONDAY, config=config) == []

    def test_holiday_overrides_every_rule(self, storage, config):
        service, _ = seed_haircut(storage)
        storage.create_rule(service.id, MONDAY_WEEKDAY, "14:00", "16:00", "UTC", 3)
        storage.create_holiday(service.id, MONDAY)
        assert compute_slots(storage, service.id, MONDAY, MONDAY, config=config) == []

    def test_holiday_only_affects_its_date(self, storage, config):
        service, _ = seed_haircut(storage)
        storage.create_holiday(service.id, MONDAY)
        next_monday = MONDAY + timedelta(days=7)
        slots = compute_slots(storage, service.id, MONDAY, next_monday, config=config)
        assert len(slots) == 6
        assert {s.start.date() for s in slots} == {next_monday}


class TestOverlappingRules:
    def test_rules_keep_independent_capacity(self, storage, config):
        service, wide = seed_haircut(storage, capacity=2)
        narrow = storage.create_rule(service.id, MONDAY_WEEKDAY, "10:00", "11:00", "UTC", 1)

        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)

        wide_slots = [s for s in slots if s.rule_id == wide.id]
        narrow_slots = [s for s in slots if s.rule_id == narrow.id]
        assert len(wide_slots) == 6
        assert len(narrow_slots) == 2
        assert all(s.capacity_remaining == 2 for s in wide_slots)
        assert all(s.capacity_remaining == 1 for s in narrow_slots)

    def test_capacity_never_pooled(self, storage, config):
        service, _ = seed_haircut(storage, capacity=2)
        storage.create_rule(service.id, MONDAY_WEEKDAY, "10:00", "11:00", "UTC", 1)
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert max(s.capacity_remaining for s in slots) == 2

    def test_booking_counts_against_each_rule(self, storage, config):
        service, wide = seed_haircut(storage, capacity=2)
        narrow = storage.create_rule(service.id, MONDAY_WEEKDAY, "10:00", "11:00", "UTC", 1)
        make_coordinator(storage, config).reserve(
            service.id, utc(MONDAY, 10), utc(MONDAY, 10, 30), make_customer()
        )

        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        at_ten = [s for s in slots if s.start == utc(MONDAY, 10)]

        assert [(s.rule_id, s.capacity_remaining) for s in at_ten] == [(wide.id, 1)]
        assert any(s.rule_id == narrow.id and s.start == utc(MONDAY, 10, 30) for s in slots)


class TestBookingsSubtracted:
    def test_booking_spanning_two_slots_removes_both(self, storage, config):
        service, _ = seed_haircut(storage)
        make_coordinator(storage, config).reserve(
            service.id, utc(MONDAY, 10, 15), utc(MONDAY, 10, 45), make_customer()
        )
        starts = [s.start for s in compute_slots(storage, service.id, MONDAY, MONDAY, config=config)]
        assert utc(MONDAY, 10) not in starts
        assert utc(MONDAY, 10, 30) not in starts
        assert len(starts) == 4

    def test_partial_capacity_reported(self, storage, config):
        service, _ = seed_haircut(storage, capacity=3)
        coordinator = make_coordinator(storage, config)
        for i in range(2):
            coordinator.reserve(
                service.id, utc(MONDAY, 9), utc(MONDAY, 9, 30),
                make_customer(email=f"guest{i}@example.com"),
            )
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert slots[0].start == utc(MONDAY, 9)
        assert slots[0].capacity_remaining == 1
        assert all(s.capacity_remaining == 3 for s in slots[1:])

    def test_canceled_booking_is_ignored(self, storage, config):
        service, _ = seed_haircut(storage)
        coordinator = make_coordinator(storage, config)
        booking = coordinator.reserve(
            service.id, utc(MONDAY, 9), utc(MONDAY, 9, 30), make_customer()
        )
        coordinator.cancel(booking.id)
        assert len(compute_slots(storage, service.id, MONDAY, MONDAY, config=config)) == 6


class TestTimezones:
    def test_winter_and_summer_offsets(self, storage, config):
        service, _ = seed_haircut(storage, tz="America/New_York")
        winter = MONDAY
        summer = date(2030, 7, 1)

        winter_slots = compute_slots(storage, service.id, winter, winter, config=config)
        summer_slots = compute_slots(storage, service.id, summer, summer, config=config)

        assert winter_slots[0].start == utc(winter, 14)
        assert summer_slots[0].start == utc(summer, 13)
        assert len(winter_slots) == len(summer_slots) == 6

    def test_slots_returned_in_utc(self, storage, config):
        service, _ = seed_haircut(storage, tz="Europe/Berlin")
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert slots[0].start == utc(MONDAY, 8)
        assert all(s.start.utcoffset() == timedelta(0) for s in slots)

    def test_weekday_matches_local_date(self, storage, config):
        # Monday 09:00 in Auckland is Sunday evening UTC
        service, _ = seed_haircut(storage, tz="Pacific/Auckland")
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert slots[0].start == utc(MONDAY - timedelta(days=1), 20)

    def test_rule_window_across_spring_forward(self):
        # 2030-03-10: US clocks jump 02:00 -> 03:00
        rule = RuleRecord(
            id=1, service_id=1, weekday=0,
            start_time_local="01:00", end_time_local="04:00",
            timezone="America/New_York", capacity=1,
        )
        start, end = rule_window(rule, date(2030, 3, 10))
        assert start == datetime(2030, 3, 10, 6, 0, tzinfo=timezone.utc)
        assert end == datetime(2030, 3, 10, 8, 0, tzinfo=timezone.utc)


class TestPartitioning:
    def test_trailing_remainder_dropped(self, storage, config):
        service, _ = seed_haircut(storage, end="10:00")
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, slot_length=25, config=config)
        assert [s.start for s in slots] == [utc(MONDAY, 9), utc(MONDAY, 9, 25)]

    def test_slot_longer_than_window_yields_nothing(self, storage, config):
        service, _ = seed_haircut(storage, end="09:20")
        assert compute_slots(storage, service.id, MONDAY, MONDAY, config=config) == []

    def test_custom_slot_length(self, storage, config):
        service, _ = seed_haircut(storage)
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, slot_length=60, config=config)
        assert [s.start.hour for s in slots] == [9, 10, 11]

    def test_split_window_exact_fit(self):
        start = utc(MONDAY, 9)
        pieces = list(split_window(start, utc(MONDAY, 10), timedelta(minutes=20)))
        assert len(pieces) == 3
        assert pieces[-1][1] == utc(MONDAY, 10)


class TestWeekdayConvention:
    def test_zero_is_sunday(self, storage, config):
        service, _ = seed_haircut(storage, weekday=0)
        sunday = MONDAY - timedelta(days=1)
        slots = compute_slots(
            storage, service.id, sunday, sunday + timedelta(days=6), config=config
        )
        assert {s.start.date() for s in slots} == {sunday}

    def test_six_is_saturday(self, storage, config):
        service, _ = seed_haircut(storage, weekday=6)
        slots = compute_slots(
            storage, service.id, MONDAY, MONDAY + timedelta(days=6), config=config
        )
        assert {s.start.date() for s in slots} == {MONDAY + timedelta(days=5)}


class TestProperties:
    def test_idempotent_without_writes(self, storage, config):
        service, _ = seed_haircut(storage, capacity=2)
        storage.create_rule(service.id, 3, "13:00", "17:00", "Europe/Paris", 1)
        first = compute_slots(storage, service.id, MONDAY, MONDAY + timedelta(days=13), config=config)
        second = compute_slots(storage, service.id, MONDAY, MONDAY + timedelta(days=13), config=config)
        assert first == second

    def test_every_slot_inside_a_rule_window(self, storage, config):
        service, _ = seed_haircut(storage)
        storage.create_rule(service.id, 3, "13:00", "17:00", "Europe/Paris", 2)
        storage.create_holiday(service.id, MONDAY + timedelta(days=7))
        rules = {r.id: r for r in storage.list_rules(service.id)}
        holidays = {h.holiday_date for h in storage.list_holidays(service.id)}

        slots = compute_slots(storage, service.id, MONDAY, MONDAY + timedelta(days=20), config=config)

        assert slots
        for slot in slots:
            rule = rules[slot.rule_id]
            local_day = slot.start.astimezone(ZoneInfo(rule.timezone)).date()
            assert local_day not in holidays
            window_start, window_end = rule_window(rule, local_day)
            assert window_start <= slot.start and slot.end <= window_end

    def test_sorted_by_start(self, storage, config):
        service, _ = seed_haircut(storage)
        storage.create_rule(service.id, MONDAY_WEEKDAY, "08:00", "09:00", "UTC", 1)
        slots = compute_slots(storage, service.id, MONDAY, MONDAY, config=config)
        assert [s.start for s in slots] == sorted(s.start for s in slots)


class TestRequestErrors:
    def test_inverted_range(self, storage, config):
        service, _ = seed_haircut(storage)
        with pytest.raises(ValidationError):
            compute_slots(storage, service.id, MONDAY, MONDAY - timedelta(days=1), config=config)

    def test_range_too_long(self, storage):
        service, _ = seed_haircut(storage)
        with pytest.raises(ValidationError):
            compute_slots(
                storage, service.id, MONDAY, MONDAY + timedelta(days=7),
                config=make_config(max_range_days=7),
            )

    def test_range_at_limit(self, storage):
        service, _ = seed_haircut(storage)
        slots = compute_slots(
            storage, service.id, MONDAY, MONDAY + timedelta(days=6),
            config=make_config(max_range_days=7),
        )
        assert len(slots) == 6

    def test_non_positive_slot_length(self, storage, config):
        service, _ = seed_haircut(storage)
        with pytest.raises(ValidationError):
            compute_slots(storage, service.id, MONDAY, MONDAY, slot_length=0, config=config)

    def test_unknown_service(self, storage, config):
        with pytest.raises(NotFoundError):
            compute_slots(storage, 999, MONDAY, MONDAY, config=config)

    def test_inactive_service(self, storage, config):
        service, _ = seed_haircut(storage)
        storage.deactivate_service(service.id)
        with pytest.raises(NotFoundError):
            compute_slots(storage, service.id, MONDAY, MONDAY, config=config)

    def test_service_without_rules(self, storage, config):
        service = storage.create_service(name="Massage", duration_minutes=60)
        assert compute_slots(storage, service.id, MONDAY, MONDAY, config=config) == []
