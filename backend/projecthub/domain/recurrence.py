"""Recurrence descriptor attached to tasks.

The descriptor is declarative: an external scheduler decides when to create
the next instance. ``next_occurrence`` only answers "when is the next date
in this series".
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum


class RecurrencePattern(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True, slots=True)
class RecurrenceDescriptor:
    """Repeat every ``interval`` units of ``pattern``."""

    pattern: RecurrencePattern
    interval: int = 1

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise ValueError("Recurrence interval must be at least 1")

    @classmethod
    def from_task(cls, task) -> "RecurrenceDescriptor | None":
        """Descriptor of a task record, or None when it does not recur."""
        if not task.is_recurring or not task.recurring_pattern:
            return None
        return cls(
            pattern=RecurrencePattern(task.recurring_pattern),
            interval=max(task.recurring_interval or 1, 1),
        )


def _add_months(anchor: date, months: int) -> date:
    """Add months, clamping the day to the end of shorter months."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def occurrence(descriptor: RecurrenceDescriptor, anchor: date, index: int) -> date:
    """The ``index``-th date of the series starting at ``anchor`` (index 0)."""
    step = descriptor.interval * index
    if descriptor.pattern == RecurrencePattern.DAILY:
        return anchor + timedelta(days=step)
    if descriptor.pattern == RecurrencePattern.WEEKLY:
        return anchor + timedelta(weeks=step)
    if descriptor.pattern == RecurrencePattern.MONTHLY:
        return _add_months(anchor, step)
    return _add_months(anchor, 12 * step)


def next_occurrence(descriptor: RecurrenceDescriptor, anchor: date, after: date) -> date:
    """First date of the series strictly after ``after``."""
    if after < anchor:
        return anchor

    # Jump close to the target, then walk forward
    if descriptor.pattern == RecurrencePattern.DAILY:
        index = (after - anchor).days // descriptor.interval
    elif descriptor.pattern == RecurrencePattern.WEEKLY:
        index = (after - anchor).days // (7 * descriptor.interval)
    elif descriptor.pattern == RecurrencePattern.MONTHLY:
        months = (after.year - anchor.year) * 12 + after.month - anchor.month
        index = max(months // descriptor.interval - 1, 0)
    else:
        index = max((after.year - anchor.year) // descriptor.interval - 1, 0)

    candidate = occurrence(descriptor, anchor, index)
    while candidate <= after:
        index += 1
        candidate = occurrence(descriptor, anchor, index)
    return candidate
