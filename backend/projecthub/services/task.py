"""Task service: validated task mutations and task fetching for the query engine."""

import dataclasses
from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from projecthub.db.base import utcnow
from projecthub.domain.codec import PropertyValue, decode_value
from projecthub.domain.enums import TaskStatus, default_priority, normalize_priority
from projecthub.domain.query import TaskFilters, TaskGroupBy, TaskSort, query_tasks
from projecthub.domain.records import PropertyDefinition, TaskRecord, scope_key
from projecthub.domain.validation import validate_task
from projecthub.exceptions import FieldError, InvalidValueError, NotFoundError, ValidationError
from projecthub.models.project import (
    Task,
    TaskCategory,
    TaskComment,
    TaskPropertyValue,
    TaskSequence,
)
from projecthub.models.user import User
from projecthub.services.change_feed import ChangeFeed, change_feed
from projecthub.services.custom_property import CustomPropertyService, ensure_scope

logger = structlog.get_logger()

# INSERT ... ON CONFLICT DO NOTHING per dialect, for seeding sequence rows
_INSERTS = {"postgresql": postgresql_insert, "sqlite": sqlite_insert}

# Fields a caller may set on create or patch on update
TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "assigned_to",
        "assigned_team",
        "due_date",
        "start_date",
        "tags",
        "labels",
        "supporting_links",
        "sprint",
        "milestone",
        "estimated_hours",
        "actual_hours",
        "order_index",
        "category_id",
        "is_recurring",
        "recurring_pattern",
        "recurring_interval",
    }
)
_LIST_FIELDS = ("tags", "labels", "supporting_links")
_DATE_FIELDS = ("due_date", "start_date")


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - TASK_FIELDS
    if unknown:
        raise TypeError(f"Unknown task field(s): {', '.join(sorted(unknown))}")

    cleaned = dict(fields)
    if isinstance(cleaned.get("title"), str):
        cleaned["title"] = cleaned["title"].strip()
    for name in _LIST_FIELDS:
        if name in cleaned:
            cleaned[name] = list(cleaned[name] or [])
    for name in _DATE_FIELDS:
        if name in cleaned:
            cleaned[name] = as_utc(cleaned[name])
    if cleaned.get("assigned_team") is not None:
        cleaned["assigned_team"] = cleaned["assigned_team"].strip() or None
    return cleaned


def to_record(
    task: Task,
    values: dict[UUID, PropertyValue] | None = None,
    comment_count: int = 0,
) -> TaskRecord:
    """Project an ORM task onto a domain record."""
    assignee = task.__dict__.get("assignee")
    is_project = task.project_id is not None
    return TaskRecord(
        id=task.id,
        project_id=task.project_id,
        task_number=task.task_number,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        priority_label=normalize_priority(True, task.priority) if is_project else None,
        assigned_to=task.assigned_to,
        assignee_name=assignee.display_name if assignee is not None else None,
        assigned_team=task.assigned_team,
        due_date=as_utc(task.due_date),
        start_date=as_utc(task.start_date),
        completed_at=as_utc(task.completed_at),
        tags=list(task.tags or []),
        labels=list(task.labels or []),
        supporting_links=list(task.supporting_links or []),
        sprint=task.sprint,
        milestone=task.milestone,
        estimated_hours=task.estimated_hours,
        actual_hours=task.actual_hours,
        order_index=task.order_index,
        category_id=task.category_id,
        is_recurring=task.is_recurring,
        recurring_pattern=task.recurring_pattern,
        recurring_interval=task.recurring_interval,
        custom_properties=dict(values or {}),
        comment_count=comment_count,
        created_by_id=task.created_by_id,
        created_at=as_utc(task.created_at),
        updated_at=as_utc(task.updated_at),
    )


class TaskService:
    """Service for creating, updating, deleting and fetching tasks in a scope."""

    def __init__(
        self,
        db: AsyncSession,
        feed: ChangeFeed = change_feed,
        strict: bool | None = None,
    ):
        self.db = db
        self.feed = feed
        self.properties = CustomPropertyService(db, feed=feed, strict=strict)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _next_task_number(self, project_id: UUID | None) -> int:
        """Next number in the scope; numbers of deleted tasks are never handed out again.

        The counter row is seeded with ON CONFLICT DO NOTHING and bumped with a
        single UPDATE ... RETURNING, so concurrent first creates in a scope
        serialize on the row instead of racing to insert it.
        """
        scope = scope_key(project_id)
        insert = _INSERTS[self.db.get_bind().dialect.name]
        await self.db.execute(
            insert(TaskSequence)
            .values(scope=scope, last_number=0)
            .on_conflict_do_nothing(index_elements=[TaskSequence.scope])
        )
        result = await self.db.execute(
            update(TaskSequence)
            .where(TaskSequence.scope == scope)
            .values(last_number=TaskSequence.last_number + 1)
            .returning(TaskSequence.last_number)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one()

    async def _next_order_index(self, project_id: UUID | None) -> int:
        scope_clause = Task.project_id.is_(None) if project_id is None else Task.project_id == project_id
        result = await self.db.execute(select(func.max(Task.order_index)).where(scope_clause))
        return (result.scalar() or 0) + 1

    async def _check_references(self, fields: dict[str, Any], errors: list[FieldError]) -> None:
        """Field errors for an assignee or category that does not exist."""
        assigned_to = fields.get("assigned_to")
        if assigned_to is not None and await self.db.get(User, assigned_to) is None:
            errors.append(FieldError("assigned_to", "Unknown member", "unknown_reference"))

        category_id = fields.get("category_id")
        if category_id is not None and await self.db.get(TaskCategory, category_id) is None:
            errors.append(FieldError("category_id", "Unknown category", "unknown_reference"))

    async def _comment_counts(self, task_ids: Sequence[UUID]) -> dict[UUID, int]:
        if not task_ids:
            return {}
        result = await self.db.execute(
            select(TaskComment.task_id, func.count())
            .where(TaskComment.task_id.in_(list(task_ids)))
            .group_by(TaskComment.task_id)
        )
        return {task_id: count for task_id, count in result.all()}

    def _decode_properties(
        self,
        raw_values: dict[UUID, Any],
        definitions: dict[UUID, PropertyDefinition],
        current: dict[UUID, PropertyValue],
        errors: list[FieldError],
    ) -> dict[UUID, PropertyValue | None]:
        """Decode raw custom property input, collecting problems into ``errors``."""
        decoded: dict[UUID, PropertyValue | None] = {}
        for property_id, raw in raw_values.items():
            definition = definitions.get(property_id)
            if definition is None:
                errors.append(
                    FieldError(
                        f"custom_properties.{property_id}",
                        "Unknown property for this scope",
                        "unknown_property",
                    )
                )
                continue
            try:
                decoded[property_id] = decode_value(
                    definition,
                    raw,
                    strict=self.properties.strict,
                    current=current.get(property_id),
                )
            except InvalidValueError as exc:
                errors.extend(exc.errors)
        return decoded

    async def _load(self, task_id: UUID) -> Task:
        result = await self.db.execute(
            select(Task)
            .options(selectinload(Task.assignee))
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def _write_properties(
        self,
        task_id: UUID,
        decoded: dict[UUID, PropertyValue | None],
        definitions: dict[UUID, PropertyDefinition],
    ) -> None:
        for property_id, value in decoded.items():
            await self.properties.write_value(task_id, definitions[property_id], value)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def _prepare_new(
        self,
        project_id: UUID | None,
        custom_properties: dict[UUID, Any] | None,
        created_by_id: UUID | None,
        fields: dict[str, Any],
    ) -> tuple[TaskRecord, dict[UUID, PropertyValue | None], dict[UUID, PropertyDefinition], list[FieldError]]:
        """Apply creation defaults and collect every problem with the new task."""
        await ensure_scope(self.db, project_id)
        fields = _clean_fields(fields)
        is_project = project_id is not None

        fields.setdefault("title", "")
        fields["status"] = fields.get("status") or TaskStatus.TODO.value
        fields["priority"] = (
            normalize_priority(is_project, fields.get("priority")) or default_priority(is_project)
        )

        definitions = {d.id: d for d in await self.properties.definitions(project_id)}
        errors: list[FieldError] = []
        decoded = self._decode_properties(custom_properties or {}, definitions, {}, errors)
        await self._check_references(fields, errors)

        record = TaskRecord(
            project_id=project_id,
            created_by_id=created_by_id,
            custom_properties={k: v for k, v in decoded.items() if v is not None},
            **fields,
        )
        errors.extend(validate_task(record, definitions.values()))
        return record, decoded, definitions, errors

    async def check_task(
        self,
        project_id: UUID | None = None,
        custom_properties: dict[UUID, Any] | None = None,
        **fields: Any,
    ) -> list[FieldError]:
        """Everything ``create_task`` would reject, without writing anything."""
        _, _, _, errors = await self._prepare_new(project_id, custom_properties, None, fields)
        return errors

    async def create_task(
        self,
        project_id: UUID | None = None,
        custom_properties: dict[UUID, Any] | None = None,
        created_by_id: UUID | None = None,
        **fields: Any,
    ) -> TaskRecord:
        """Create a task; every field problem is reported together."""
        record, decoded, definitions, errors = await self._prepare_new(
            project_id, custom_properties, created_by_id, fields
        )
        if errors:
            raise ValidationError(errors)

        fields = {name: getattr(record, name) for name in TASK_FIELDS}
        if fields.get("order_index") is None:
            fields["order_index"] = await self._next_order_index(project_id)
        task = Task(
            project_id=project_id,
            task_number=await self._next_task_number(project_id),
            created_by_id=created_by_id,
            completed_at=utcnow() if record.status == TaskStatus.COMPLETED else None,
            **fields,
        )
        self.db.add(task)
        await self.db.flush()
        await self._write_properties(task.id, decoded, definitions)
        await self.db.commit()

        logger.info(
            "task_created",
            task_id=str(task.id),
            scope=scope_key(project_id),
            task_number=task.task_number,
        )
        await self.feed.publish(scope_key(project_id), reason="task_created")
        return await self.get_task(task.id)

    async def get_task(self, task_id: UUID) -> TaskRecord:
        """Get a task with its custom property values."""
        task = await self._load(task_id)
        definitions = {d.id: d for d in await self.properties.definitions(task.project_id)}
        values = await self.properties.get_task_values([task.id], definitions)
        counts = await self._comment_counts([task.id])
        return to_record(task, values[task.id], counts.get(task.id, 0))

    async def update_task(
        self,
        task_id: UUID,
        custom_properties: dict[UUID, Any] | None = None,
        **patch: Any,
    ) -> TaskRecord:
        """Apply a partial update; validation runs on the merged task."""
        task = await self._load(task_id)
        patch = _clean_fields(patch)
        is_project = task.project_id is not None

        if "priority" in patch:
            patch["priority"] = normalize_priority(is_project, patch["priority"])

        definitions = {d.id: d for d in await self.properties.definitions(task.project_id)}
        current_values = (await self.properties.get_task_values([task.id], definitions))[task.id]
        current = to_record(task, current_values)

        errors: list[FieldError] = []
        decoded = self._decode_properties(
            custom_properties or {}, definitions, current_values, errors
        )
        merged_values = dict(current_values)
        for property_id, value in decoded.items():
            if value is None:
                merged_values.pop(property_id, None)
            else:
                merged_values[property_id] = value

        merged = dataclasses.replace(current, custom_properties=merged_values, **patch)
        errors.extend(validate_task(merged, definitions.values()))
        await self._check_references(patch, errors)
        if errors:
            raise ValidationError(errors)

        if "status" in patch:
            if patch["status"] == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
                task.completed_at = utcnow()
            elif patch["status"] != TaskStatus.COMPLETED:
                task.completed_at = None

        for field, value in patch.items():
            setattr(task, field, value)
        await self._write_properties(task.id, decoded, definitions)
        await self.db.commit()

        logger.info("task_updated", task_id=str(task_id), fields=sorted(patch))
        await self.feed.publish(scope_key(task.project_id), reason="task_updated")
        return await self.get_task(task_id)

    async def delete_task(self, task_id: UUID) -> None:
        """Hard delete a task together with its custom property values and comments."""
        task = await self._load(task_id)
        project_id = task.project_id

        await self.db.execute(
            delete(TaskPropertyValue).where(TaskPropertyValue.task_id == task_id)
        )
        await self.db.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
        await self.db.execute(delete(Task).where(Task.id == task_id))
        await self.db.commit()

        logger.info("task_deleted", task_id=str(task_id), scope=scope_key(project_id))
        await self.feed.publish(scope_key(project_id), reason="task_deleted")

    # =========================================================================
    # Fetching and querying
    # =========================================================================

    async def fetch_tasks(self, project_id: UUID | None) -> list[TaskRecord]:
        """All tasks of a scope in task-number order, with assignee names and values."""
        scope_clause = Task.project_id.is_(None) if project_id is None else Task.project_id == project_id
        result = await self.db.execute(
            select(Task)
            .options(selectinload(Task.assignee))
            .where(scope_clause)
            .order_by(Task.task_number)
            .execution_options(populate_existing=True)
        )
        tasks: Sequence[Task] = result.scalars().all()

        definitions = {d.id: d for d in await self.properties.definitions(project_id)}
        task_ids = [t.id for t in tasks]
        values = await self.properties.get_task_values(task_ids, definitions)
        counts = await self._comment_counts(task_ids)
        return [to_record(task, values[task.id], counts.get(task.id, 0)) for task in tasks]

    async def reorder_tasks(self, project_id: UUID | None, task_ids: Sequence[UUID]) -> list[TaskRecord]:
        """Give the listed tasks of a scope positions 1..n in the given order.

        Ids that are not tasks of the scope are ignored; unlisted tasks keep
        their position.
        """
        scope_clause = Task.project_id.is_(None) if project_id is None else Task.project_id == project_id
        result = await self.db.execute(
            select(Task).where(scope_clause, Task.id.in_(list(task_ids)))
        )
        tasks = {task.id: task for task in result.scalars().all()}

        position = 0
        for task_id in task_ids:
            task = tasks.pop(task_id, None)
            if task is None:
                continue
            position += 1
            task.order_index = position
        await self.db.commit()

        logger.info("tasks_reordered", scope=scope_key(project_id), count=position)
        await self.feed.publish(scope_key(project_id), reason="tasks_reordered")
        return await self.fetch_tasks(project_id)

    async def query(
        self,
        project_id: UUID | None,
        filters: TaskFilters | None = None,
        sort: TaskSort | None = None,
        group_by: TaskGroupBy | str = TaskGroupBy.NONE,
    ) -> dict[str, list[TaskRecord]]:
        """Fetch the whole scope and run the query engine over it locally."""
        return query_tasks(await self.fetch_tasks(project_id), filters, sort, group_by)
