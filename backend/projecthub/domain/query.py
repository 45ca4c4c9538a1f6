"""Query engine: filter -> sort -> group over an in-memory task collection.

Every view (table, Kanban, calendar, Gantt) goes through ``query_tasks`` so
they all see the same tasks in the same order. The functions here are pure
and deterministic: the same input always yields the same output, bucket
order included, which makes recomputing on every change notification safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Callable, Iterable, Sequence
from uuid import UUID

from projecthub.domain.enums import PRIORITY_RANK, STATUS_RANK
from projecthub.domain.records import TaskRecord

ALL_TASKS = "All Tasks"
NO_TEAM = "No Team"
NO_SPRINT = "No Sprint"
NO_MILESTONE = "No Milestone"
UNASSIGNED = "Unassigned"
UNKNOWN_ASSIGNEE = "Unknown"


class SortField(StrEnum):
    TASK_NUMBER = "task_number"
    TITLE = "title"
    STATUS = "status"
    PRIORITY = "priority"
    DUE_DATE = "due_date"
    CREATED_AT = "created_at"
    ASSIGNED_TO = "assigned_to"
    ASSIGNED_TEAM = "assigned_team"
    SPRINT = "sprint"
    MILESTONE = "milestone"
    ORDER_INDEX = "order_index"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class TaskGroupBy(StrEnum):
    NONE = "none"
    STATUS = "status"
    PRIORITY = "priority"
    ASSIGNED_TEAM = "assigned_team"
    ASSIGNEE = "assignee"
    SPRINT = "sprint"
    MILESTONE = "milestone"


@dataclass(slots=True)
class TaskFilters:
    """Conjunction of predicates; an empty set, unset bound or blank search is skipped.

    Date bounds are inclusive. A task without the bounded date never matches
    a range on that date.
    """

    status: set[str] = field(default_factory=set)
    priority: set[str] = field(default_factory=set)
    assigned_to: set[UUID] = field(default_factory=set)
    assigned_team: set[str] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    labels: set[str] = field(default_factory=set)
    sprint: set[str] = field(default_factory=set)
    milestone: set[str] = field(default_factory=set)
    category_id: set[UUID] = field(default_factory=set)
    created_by: set[UUID] = field(default_factory=set)
    due_date_from: datetime | None = None
    due_date_to: datetime | None = None
    created_date_from: datetime | None = None
    created_date_to: datetime | None = None
    is_recurring: bool | None = None
    search: str | None = None


@dataclass(frozen=True, slots=True)
class TaskSort:
    field: SortField = SortField.TASK_NUMBER
    direction: SortDirection = SortDirection.ASC


# =============================================================================
# Filtering
# =============================================================================


def _matches_search(task: TaskRecord, needle: str) -> bool:
    if needle in (task.title or "").casefold():
        return True
    return bool(task.description) and needle in task.description.casefold()


def _within(moment: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if start is None and end is None:
        return True
    if moment is None:
        return False
    if start is not None and moment < start:
        return False
    return end is None or moment <= end


def matches(task: TaskRecord, filters: TaskFilters) -> bool:
    """Whether ``task`` satisfies every non-empty predicate of ``filters``."""
    if filters.status and task.status not in filters.status:
        return False
    if filters.priority and filters.priority.isdisjoint({task.priority, task.priority_label}):
        return False
    if filters.assigned_to and task.assigned_to not in filters.assigned_to:
        return False
    if filters.assigned_team and task.assigned_team not in filters.assigned_team:
        return False
    if filters.sprint and task.sprint not in filters.sprint:
        return False
    if filters.milestone and task.milestone not in filters.milestone:
        return False
    if filters.tags and filters.tags.isdisjoint(task.tags):
        return False
    if filters.labels and filters.labels.isdisjoint(task.labels):
        return False
    if filters.category_id and task.category_id not in filters.category_id:
        return False
    if filters.created_by and task.created_by_id not in filters.created_by:
        return False
    if filters.is_recurring is not None and task.is_recurring != filters.is_recurring:
        return False
    if not _within(task.due_date, filters.due_date_from, filters.due_date_to):
        return False
    if not _within(task.created_at, filters.created_date_from, filters.created_date_to):
        return False

    needle = (filters.search or "").strip().casefold()
    if needle and not _matches_search(task, needle):
        return False
    return True


def filter_tasks(tasks: Iterable[TaskRecord], filters: TaskFilters | None) -> list[TaskRecord]:
    if filters is None:
        return list(tasks)
    return [task for task in tasks if matches(task, filters)]


# =============================================================================
# Sorting
# =============================================================================


def _rank(table: dict[str, int]) -> Callable[[str], int]:
    unknown = len(table)
    return lambda value: table.get(value, unknown)


_SORT_KEYS: dict[SortField, Callable[[TaskRecord], Any]] = {
    SortField.TASK_NUMBER: lambda t: t.task_number,
    SortField.TITLE: lambda t: t.title,
    SortField.STATUS: lambda t: _rank(STATUS_RANK)(t.status),
    SortField.PRIORITY: lambda t: _rank(PRIORITY_RANK)(t.priority_label or t.priority),
    SortField.DUE_DATE: lambda t: t.due_date,
    SortField.CREATED_AT: lambda t: t.created_at,
    SortField.ASSIGNED_TO: lambda t: str(t.assigned_to) if t.assigned_to else None,
    SortField.ASSIGNED_TEAM: lambda t: t.assigned_team,
    SortField.SPRINT: lambda t: t.sprint,
    SortField.MILESTONE: lambda t: t.milestone,
    SortField.ORDER_INDEX: lambda t: t.order_index,
}


def sort_tasks(tasks: Sequence[TaskRecord], sort: TaskSort | None) -> list[TaskRecord]:
    """Stable sort; tasks missing the sort value go last in either direction.

    Priority ascending means most urgent first (P1..P5, urgent..low).
    """
    if sort is None:
        return list(tasks)

    key = _SORT_KEYS[SortField(sort.field)]
    present = [t for t in tasks if key(t) is not None]
    missing = [t for t in tasks if key(t) is None]

    # sorted() keeps equal elements in input order, reverse=True included
    ordered = sorted(present, key=key, reverse=sort.direction == SortDirection.DESC)
    return ordered + missing


# =============================================================================
# Grouping
# =============================================================================


def _assignee_key(task: TaskRecord) -> str:
    if task.assigned_to is None:
        return UNASSIGNED
    return task.assignee_name or UNKNOWN_ASSIGNEE


_GROUP_KEYS: dict[TaskGroupBy, Callable[[TaskRecord], str]] = {
    TaskGroupBy.STATUS: lambda t: t.status,
    TaskGroupBy.PRIORITY: lambda t: t.priority_label or t.priority,
    TaskGroupBy.ASSIGNED_TEAM: lambda t: t.assigned_team or NO_TEAM,
    TaskGroupBy.ASSIGNEE: _assignee_key,
    TaskGroupBy.SPRINT: lambda t: t.sprint or NO_SPRINT,
    TaskGroupBy.MILESTONE: lambda t: t.milestone or NO_MILESTONE,
}


def group_tasks(
    tasks: Sequence[TaskRecord],
    group_by: TaskGroupBy | str = TaskGroupBy.NONE,
) -> dict[str, list[TaskRecord]]:
    """Partition tasks into buckets in first-encounter order.

    Within a bucket tasks keep the order they arrived in.
    """
    group_by = TaskGroupBy(group_by)
    if group_by == TaskGroupBy.NONE:
        return {ALL_TASKS: list(tasks)}

    key = _GROUP_KEYS[group_by]
    groups: dict[str, list[TaskRecord]] = {}
    for task in tasks:
        groups.setdefault(key(task), []).append(task)
    return groups


def query_tasks(
    tasks: Iterable[TaskRecord],
    filters: TaskFilters | None = None,
    sort: TaskSort | None = None,
    group_by: TaskGroupBy | str = TaskGroupBy.NONE,
) -> dict[str, list[TaskRecord]]:
    """Filter, then sort, then group ``tasks``."""
    return group_tasks(sort_tasks(filter_tasks(tasks, filters), sort), group_by)
