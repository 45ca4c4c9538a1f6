"""Tasks API endpoints."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from projecthub.db.session import DBSession
from projecthub.domain.codec import format_value, to_json
from projecthub.domain.enums import statuses_for
from projecthub.domain.projections import calendar_days, gantt_bars, kanban_columns
from projecthub.domain.query import (
    SortDirection,
    SortField,
    TaskFilters,
    TaskGroupBy,
    TaskSort,
    filter_tasks,
    sort_tasks,
)
from projecthub.domain.records import TaskRecord
from projecthub.models.project import TaskComment
from projecthub.services.comment import CommentService
from projecthub.services.custom_property import CustomPropertyService
from projecthub.services.task import TaskService, as_utc

router = APIRouter()


# Request/Response Models
class TaskCreate(BaseModel):
    """Create a task. ``project_id`` of null puts it in the global task space."""

    project_id: UUID | None = None
    title: str = ""
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_to: UUID | None = None
    assigned_team: str | None = None
    due_date: datetime | None = None
    start_date: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    supporting_links: list[str] = Field(default_factory=list)
    sprint: str | None = None
    milestone: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    order_index: int | None = None
    category_id: UUID | None = None
    is_recurring: bool = False
    recurring_pattern: str | None = None
    recurring_interval: int = 1
    custom_properties: dict[UUID, Any] = Field(default_factory=dict)
    created_by_id: UUID | None = None


class TaskUpdate(BaseModel):
    """Partial update; only fields present in the body are changed."""

    title: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_to: UUID | None = None
    assigned_team: str | None = None
    due_date: datetime | None = None
    start_date: datetime | None = None
    tags: list[str] | None = None
    labels: list[str] | None = None
    supporting_links: list[str] | None = None
    sprint: str | None = None
    milestone: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    order_index: int | None = None
    category_id: UUID | None = None
    is_recurring: bool | None = None
    recurring_pattern: str | None = None
    recurring_interval: int | None = None
    custom_properties: dict[UUID, Any] | None = None


class PropertyValueSet(BaseModel):
    value: Any = None


class PropertyValueResponse(BaseModel):
    task_id: UUID
    property_id: UUID
    value: Any
    display: str


class TaskResponse(BaseModel):
    id: UUID
    project_id: UUID | None
    task_number: int | None
    title: str
    description: str | None
    status: str
    priority: str
    assigned_to: UUID | None
    assignee_name: str | None
    assigned_team: str | None
    due_date: datetime | None
    start_date: datetime | None
    completed_at: datetime | None
    tags: list[str]
    labels: list[str]
    supporting_links: list[str]
    sprint: str | None
    milestone: str | None
    estimated_hours: float | None
    actual_hours: float | None
    order_index: int | None
    category_id: UUID | None
    is_recurring: bool
    recurring_pattern: str | None
    recurring_interval: int
    custom_properties: dict[str, Any]
    comment_count: int
    created_by_id: UUID | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_record(cls, record: TaskRecord) -> "TaskResponse":
        return cls(
            id=record.id,
            project_id=record.project_id,
            task_number=record.task_number,
            title=record.title,
            description=record.description,
            status=record.status,
            priority=record.priority,
            assigned_to=record.assigned_to,
            assignee_name=record.assignee_name,
            assigned_team=record.assigned_team,
            due_date=record.due_date,
            start_date=record.start_date,
            completed_at=record.completed_at,
            tags=record.tags,
            labels=record.labels,
            supporting_links=record.supporting_links,
            sprint=record.sprint,
            milestone=record.milestone,
            estimated_hours=record.estimated_hours,
            actual_hours=record.actual_hours,
            order_index=record.order_index,
            category_id=record.category_id,
            is_recurring=record.is_recurring,
            recurring_pattern=record.recurring_pattern,
            recurring_interval=record.recurring_interval,
            custom_properties={
                str(property_id): to_json(value)
                for property_id, value in record.custom_properties.items()
            },
            comment_count=record.comment_count,
            created_by_id=record.created_by_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class TaskReorder(BaseModel):
    """New manual order for tasks of one scope, first id first."""

    project_id: UUID | None = None
    task_ids: list[UUID]


class TaskCommentCreate(BaseModel):
    user_id: UUID
    content: str = Field(..., min_length=1)


class TaskCommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class TaskCommentResponse(BaseModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    user_name: str | None
    content: str
    edited_at: datetime | None
    created_at: datetime

    @classmethod
    def from_model(cls, comment: TaskComment) -> "TaskCommentResponse":
        return cls(
            id=comment.id,
            task_id=comment.task_id,
            user_id=comment.user_id,
            user_name=comment.user.display_name if comment.user else None,
            content=comment.content,
            edited_at=as_utc(comment.edited_at),
            created_at=as_utc(comment.created_at),
        )


class TaskGroupResponse(BaseModel):
    """One bucket of a grouped query, in engine order."""

    key: str
    tasks: list[TaskResponse]


class CalendarDayResponse(BaseModel):
    day: date
    tasks: list[TaskResponse]


class GanttBarResponse(BaseModel):
    task: TaskResponse
    start: datetime
    end: datetime


class ValidationResponse(BaseModel):
    valid: bool
    errors: dict[str, list[str]]


def serialize_groups(groups: dict[str, list[TaskRecord]]) -> list[TaskGroupResponse]:
    """Ordered list of buckets; JSON objects would not keep the bucket order reliably."""
    return [
        TaskGroupResponse(key=key, tasks=[TaskResponse.from_record(t) for t in tasks])
        for key, tasks in groups.items()
    ]


@dataclass
class TaskQueryParams:
    project_id: UUID | None
    filters: TaskFilters
    sort: TaskSort


def task_query_params(
    project_id: UUID | None = Query(None, description="Omit for the global task space"),
    status_filter: list[str] = Query([], alias="status"),
    priority: list[str] = Query([]),
    assigned_to: list[UUID] = Query([]),
    assigned_team: list[str] = Query([]),
    tags: list[str] = Query([]),
    labels: list[str] = Query([]),
    sprint: list[str] = Query([]),
    milestone: list[str] = Query([]),
    category_id: list[UUID] = Query([]),
    created_by: list[UUID] = Query([]),
    due_date_from: datetime | None = Query(None),
    due_date_to: datetime | None = Query(None),
    created_date_from: datetime | None = Query(None),
    created_date_to: datetime | None = Query(None),
    is_recurring: bool | None = Query(None),
    search: str | None = Query(None),
    sort: SortField = Query(SortField.TASK_NUMBER),
    direction: SortDirection = Query(SortDirection.ASC),
) -> TaskQueryParams:
    return TaskQueryParams(
        project_id=project_id,
        filters=TaskFilters(
            status=set(status_filter),
            priority=set(priority),
            assigned_to=set(assigned_to),
            assigned_team=set(assigned_team),
            tags=set(tags),
            labels=set(labels),
            sprint=set(sprint),
            milestone=set(milestone),
            category_id=set(category_id),
            created_by=set(created_by),
            due_date_from=as_utc(due_date_from),
            due_date_to=as_utc(due_date_to),
            created_date_from=as_utc(created_date_from),
            created_date_to=as_utc(created_date_to),
            is_recurring=is_recurring,
            search=search,
        ),
        sort=TaskSort(field=sort, direction=direction),
    )


async def _filtered_sorted(service: TaskService, params: TaskQueryParams) -> list[TaskRecord]:
    tasks = await service.fetch_tasks(params.project_id)
    return sort_tasks(filter_tasks(tasks, params.filters), params.sort)


# =============================================================================
# Collection
# =============================================================================


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(body: TaskCreate, db: DBSession) -> TaskResponse:
    """Create a task; all validation problems come back together as a 422."""
    record = await TaskService(db).create_task(**body.model_dump())
    return TaskResponse.from_record(record)


@router.get("", response_model=list[TaskGroupResponse])
async def list_tasks(
    db: DBSession,
    params: TaskQueryParams = Depends(task_query_params),
    group_by: TaskGroupBy = Query(TaskGroupBy.NONE),
) -> list[TaskGroupResponse]:
    """Filter, sort and group the tasks of a scope."""
    groups = await TaskService(db).query(
        params.project_id, params.filters, params.sort, group_by
    )
    return serialize_groups(groups)


@router.post("/reorder", response_model=list[TaskResponse])
async def reorder_tasks(body: TaskReorder, db: DBSession) -> list[TaskResponse]:
    """Set the manual order of a scope; returns the scope in task-number order."""
    records = await TaskService(db).reorder_tasks(body.project_id, body.task_ids)
    return [TaskResponse.from_record(record) for record in records]


@router.post("/validate", response_model=ValidationResponse)
async def validate_task(body: TaskCreate, db: DBSession) -> ValidationResponse:
    """Dry run of task creation: report every problem, write nothing."""
    fields = body.model_dump(exclude={"created_by_id"})
    errors = await TaskService(db).check_task(**fields)
    grouped: dict[str, list[str]] = {}
    for error in errors:
        grouped.setdefault(error.field, []).append(error.message)
    return ValidationResponse(valid=not errors, errors=grouped)


# =============================================================================
# Views
# =============================================================================


@router.get("/views/kanban", response_model=list[TaskGroupResponse])
async def kanban_view(
    db: DBSession,
    params: TaskQueryParams = Depends(task_query_params),
) -> list[TaskGroupResponse]:
    """One column per status of the scope's family, empty columns included."""
    tasks = await _filtered_sorted(TaskService(db), params)
    statuses = statuses_for(params.project_id is not None)
    return serialize_groups(kanban_columns(tasks, statuses))


@router.get("/views/calendar", response_model=list[CalendarDayResponse])
async def calendar_view(
    db: DBSession,
    params: TaskQueryParams = Depends(task_query_params),
    date_field: Literal["due_date", "start_date"] = Query("due_date"),
    start: date | None = Query(None, description="First visible day, inclusive"),
    end: date | None = Query(None, description="Last visible day, inclusive"),
) -> list[CalendarDayResponse]:
    tasks = await _filtered_sorted(TaskService(db), params)
    return [
        CalendarDayResponse(day=day, tasks=[TaskResponse.from_record(t) for t in day_tasks])
        for day, day_tasks in calendar_days(tasks, date_field, start, end).items()
    ]


@router.get("/views/gantt", response_model=list[GanttBarResponse])
async def gantt_view(
    db: DBSession,
    params: TaskQueryParams = Depends(task_query_params),
) -> list[GanttBarResponse]:
    tasks = await _filtered_sorted(TaskService(db), params)
    return [
        GanttBarResponse(task=TaskResponse.from_record(bar.task), start=bar.start, end=bar.end)
        for bar in gantt_bars(tasks)
    ]


# =============================================================================
# Single task
# =============================================================================


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: UUID, db: DBSession) -> TaskResponse:
    return TaskResponse.from_record(await TaskService(db).get_task(task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: UUID, body: TaskUpdate, db: DBSession) -> TaskResponse:
    """Merge the given fields into the task and validate the result."""
    patch = body.model_dump(exclude_unset=True)
    record = await TaskService(db).update_task(task_id, **patch)
    return TaskResponse.from_record(record)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: UUID, db: DBSession) -> Response:
    await TaskService(db).delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{task_id}/properties/{property_id}", response_model=PropertyValueResponse)
async def set_task_property(
    task_id: UUID,
    property_id: UUID,
    body: PropertyValueSet,
    db: DBSession,
) -> PropertyValueResponse:
    """Set one custom property value; empty input clears it."""
    value = await CustomPropertyService(db).set_task_value(task_id, property_id, body.value)
    return PropertyValueResponse(
        task_id=task_id,
        property_id=property_id,
        value=to_json(value),
        display=format_value(value),
    )


@router.delete("/{task_id}/properties/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_task_property(task_id: UUID, property_id: UUID, db: DBSession) -> Response:
    await CustomPropertyService(db).delete_task_value(task_id, property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Comments
# =============================================================================


@router.get("/{task_id}/comments", response_model=list[TaskCommentResponse])
async def list_task_comments(task_id: UUID, db: DBSession) -> list[TaskCommentResponse]:
    """Comments on a task, oldest first."""
    comments = await CommentService(db).list_comments(task_id)
    return [TaskCommentResponse.from_model(c) for c in comments]


@router.post(
    "/{task_id}/comments",
    response_model=TaskCommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_task_comment(
    task_id: UUID,
    body: TaskCommentCreate,
    db: DBSession,
) -> TaskCommentResponse:
    comment = await CommentService(db).add_comment(task_id, body.user_id, body.content)
    return TaskCommentResponse.from_model(comment)


@router.patch("/{task_id}/comments/{comment_id}", response_model=TaskCommentResponse)
async def update_task_comment(
    task_id: UUID,
    comment_id: UUID,
    body: TaskCommentUpdate,
    db: DBSession,
) -> TaskCommentResponse:
    comment = await CommentService(db).update_comment(task_id, comment_id, body.content)
    return TaskCommentResponse.from_model(comment)


@router.delete("/{task_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_comment(task_id: UUID, comment_id: UUID, db: DBSession) -> Response:
    await CommentService(db).delete_comment(task_id, comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
