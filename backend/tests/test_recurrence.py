# tests/test_recurrence.py - recurrence descriptor
from datetime import date

import pytest

from projecthub.domain.recurrence import (
    RecurrenceDescriptor,
    RecurrencePattern,
    next_occurrence,
    occurrence,
)
from tests.conftest import make_task


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RecurrenceDescriptor(RecurrencePattern.DAILY, interval=0)


def test_descriptor_from_task():
    assert RecurrenceDescriptor.from_task(make_task("One-off")) is None
    task = make_task("Standup", is_recurring=True, recurring_pattern="weekly", recurring_interval=2)
    assert RecurrenceDescriptor.from_task(task) == RecurrenceDescriptor(RecurrencePattern.WEEKLY, 2)


def test_next_daily_occurrence_is_strictly_after():
    every_three_days = RecurrenceDescriptor(RecurrencePattern.DAILY, 3)
    anchor = date(2024, 1, 1)
    assert next_occurrence(every_three_days, anchor, date(2024, 1, 1)) == date(2024, 1, 4)
    assert next_occurrence(every_three_days, anchor, date(2024, 1, 5)) == date(2024, 1, 7)


def test_series_that_has_not_started_returns_anchor():
    weekly = RecurrenceDescriptor(RecurrencePattern.WEEKLY)
    assert next_occurrence(weekly, date(2024, 6, 3), date(2024, 1, 1)) == date(2024, 6, 3)


def test_weekly_with_interval():
    fortnightly = RecurrenceDescriptor(RecurrencePattern.WEEKLY, 2)
    assert next_occurrence(fortnightly, date(2024, 1, 1), date(2024, 1, 10)) == date(2024, 1, 15)


def test_monthly_clamps_to_end_of_short_months():
    monthly = RecurrenceDescriptor(RecurrencePattern.MONTHLY)
    anchor = date(2024, 1, 31)
    assert occurrence(monthly, anchor, 1) == date(2024, 2, 29)
    assert occurrence(monthly, anchor, 2) == date(2024, 3, 31)
    assert next_occurrence(monthly, anchor, date(2024, 2, 29)) == date(2024, 3, 31)
    assert next_occurrence(monthly, anchor, date(2024, 4, 15)) == date(2024, 4, 30)


def test_yearly_from_leap_day():
    yearly = RecurrenceDescriptor(RecurrencePattern.YEARLY)
    assert next_occurrence(yearly, date(2024, 2, 29), date(2024, 3, 1)) == date(2025, 2, 28)
