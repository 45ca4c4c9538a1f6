"""Plain domain records consumed by validation and the query engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from projecthub.domain.codec import PropertyValue
from projecthub.domain.enums import PropertyType

GLOBAL_SCOPE = "global"


def scope_key(project_id: UUID | None) -> str:
    """Key identifying a scope: a project id, or the global task space."""
    return str(project_id) if project_id is not None else GLOBAL_SCOPE


@dataclass(slots=True)
class PropertyDefinition:
    """A user-defined typed attribute attachable to tasks within a scope."""

    id: UUID
    name: str
    property_type: PropertyType
    project_id: UUID | None = None
    options: list[str] = field(default_factory=list)
    is_required: bool = False
    display_order: int = 0

    @classmethod
    def from_model(cls, model: Any) -> PropertyDefinition:
        return cls(
            id=model.id,
            name=model.name,
            property_type=PropertyType(model.property_type),
            project_id=model.project_id,
            options=list(model.options or []),
            is_required=model.is_required,
            display_order=model.display_order,
        )


@dataclass(slots=True)
class TaskRecord:
    """Snapshot of a task as seen by validation, the query engine and views.

    ``project_id`` of None means the task lives in the global task space,
    which uses the extended status set and the low..urgent priorities.
    ``priority_label`` is the P1..P5 label of a project task, also for rows
    still holding a legacy low/medium/high priority.
    """

    title: str
    id: UUID | None = None
    project_id: UUID | None = None
    task_number: int | None = None
    description: str | None = None
    status: str = "todo"
    priority: str = "P2"
    priority_label: str | None = None
    assigned_to: UUID | None = None
    assignee_name: str | None = None
    assigned_team: str | None = None
    due_date: datetime | None = None
    start_date: datetime | None = None
    completed_at: datetime | None = None
    tags: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    supporting_links: list[str] = field(default_factory=list)
    sprint: str | None = None
    milestone: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    order_index: int | None = None
    category_id: UUID | None = None
    is_recurring: bool = False
    recurring_pattern: str | None = None
    recurring_interval: int = 1
    custom_properties: dict[UUID, PropertyValue] = field(default_factory=dict)
    comment_count: int = 0
    created_by_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_project_task(self) -> bool:
        return self.project_id is not None

    @property
    def scope(self) -> str:
        return scope_key(self.project_id)
