"""View projections over the query engine's output.

Each function takes tasks already filtered and sorted by ``query_tasks`` and
keeps that order; they only decide placement.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Sequence

from projecthub.domain.enums import TaskStatus
from projecthub.domain.query import TaskGroupBy, group_tasks
from projecthub.domain.records import TaskRecord


@dataclass(frozen=True, slots=True)
class GanttBar:
    task: TaskRecord
    start: datetime
    end: datetime


def kanban_columns(
    tasks: Sequence[TaskRecord],
    statuses: Sequence[TaskStatus | str],
) -> dict[str, list[TaskRecord]]:
    """One column per status, in the given order, empty columns included.

    Tasks whose status is not among ``statuses`` get trailing columns in
    first-encounter order so nothing disappears from the board.
    """
    grouped = group_tasks(tasks, TaskGroupBy.STATUS)
    columns: dict[str, list[TaskRecord]] = {str(s): grouped.pop(str(s), []) for s in statuses}
    columns.update(grouped)
    return columns


def calendar_days(
    tasks: Sequence[TaskRecord],
    date_field: str = "due_date",
    start: date | None = None,
    end: date | None = None,
) -> dict[date, list[TaskRecord]]:
    """Bucket tasks by the UTC calendar day of ``date_field``, days ascending.

    ``start`` and ``end`` bound the visible window, both inclusive.
    """
    days: dict[date, list[TaskRecord]] = {}
    for task in tasks:
        moment: datetime | None = getattr(task, date_field)
        if moment is None:
            continue
        day = moment.astimezone(timezone.utc).date()
        if (start is not None and day < start) or (end is not None and day > end):
            continue
        days.setdefault(day, []).append(task)
    return dict(sorted(days.items()))


def gantt_bars(tasks: Sequence[TaskRecord]) -> list[GanttBar]:
    """A bar per task that has a start or a due date.

    A task with only one of the two dates gets a zero-length bar at that
    instant; reversed ranges are swapped.
    """
    bars = []
    for task in tasks:
        start = task.start_date or task.due_date
        end = task.due_date or task.start_date
        if start is None or end is None:
            continue
        if end < start:
            start, end = end, start
        bars.append(GanttBar(task=task, start=start, end=end))
    return bars
