"""Task enums and the two priority vocabularies.

Project-scoped tasks and global tasks are two families with their own
closed status and priority sets. Declaration order is meaningful: the query
engine sorts statuses by it, and priorities are declared most urgent first.
"""

from enum import StrEnum


class PropertyType(StrEnum):
    """Declared type of a custom property."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    DROPDOWN = "dropdown"
    TAGS = "tags"
    URL = "url"


class TaskStatus(StrEnum):
    """Status of a task. The first three belong to project tasks."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on-hold"


PROJECT_STATUSES: tuple[TaskStatus, ...] = (
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
)
GLOBAL_STATUSES: tuple[TaskStatus, ...] = tuple(TaskStatus)


class ProjectPriority(StrEnum):
    """Priority of a project-scoped task, P1 is the most urgent."""

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    P5 = "P5"


class GlobalPriority(StrEnum):
    """Priority of a global task, most urgent first."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


DEFAULT_PROJECT_PRIORITY = ProjectPriority.P2
DEFAULT_GLOBAL_PRIORITY = GlobalPriority.MEDIUM

# Legacy low/medium/high values still sent for project tasks. Lossy: nothing
# maps to P4 or P5, and there is no reverse mapping.
LEGACY_PRIORITY_MAP: dict[str, ProjectPriority] = {
    GlobalPriority.HIGH: ProjectPriority.P1,
    GlobalPriority.MEDIUM: ProjectPriority.P2,
    GlobalPriority.LOW: ProjectPriority.P3,
}

STATUS_RANK: dict[str, int] = {s.value: i for i, s in enumerate(TaskStatus)}
PRIORITY_RANK: dict[str, int] = {
    **{p.value: i for i, p in enumerate(ProjectPriority)},
    **{p.value: i for i, p in enumerate(GlobalPriority)},
}


def statuses_for(is_project: bool) -> tuple[TaskStatus, ...]:
    """Allowed statuses for a task family."""
    return PROJECT_STATUSES if is_project else GLOBAL_STATUSES


def priorities_for(is_project: bool) -> tuple[str, ...]:
    """Allowed priority values for a task family."""
    family = ProjectPriority if is_project else GlobalPriority
    return tuple(p.value for p in family)


def default_priority(is_project: bool) -> str:
    return (DEFAULT_PROJECT_PRIORITY if is_project else DEFAULT_GLOBAL_PRIORITY).value


def normalize_priority(is_project: bool, priority: str | None) -> str | None:
    """Map a legacy low/medium/high priority onto P1..P3 for project tasks.

    Values that are not legacy vocabulary, and every global task priority,
    pass through untouched so validation can judge them.
    """
    if priority is None or not is_project:
        return priority
    mapped = LEGACY_PRIORITY_MAP.get(priority)
    return mapped.value if mapped is not None else priority
