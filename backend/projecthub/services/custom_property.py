"""Custom property service: scope-level definitions and per-task values."""

from typing import Any, Sequence
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.config import get_settings
from projecthub.domain.codec import (
    PropertyValue,
    decode_value,
    field_key,
    from_storage,
    to_storage,
)
from projecthub.domain.enums import PropertyType
from projecthub.domain.records import PropertyDefinition, scope_key
from projecthub.exceptions import (
    CascadeIntegrityError,
    FieldError,
    NotFoundError,
    ValidationError,
)
from projecthub.models.project import CustomProperty, Project, Task, TaskPropertyValue
from projecthub.services.change_feed import ChangeFeed, change_feed

logger = structlog.get_logger()


def clean_options(options: Sequence[str] | None) -> list[str]:
    """Trim option labels, drop empty ones and duplicates, keep order."""
    cleaned: list[str] = []
    for option in options or []:
        label = str(option).strip()
        if label and label not in cleaned:
            cleaned.append(label)
    return cleaned


async def ensure_scope(db: AsyncSession, project_id: UUID | None) -> None:
    """Raise ``NotFoundError`` unless ``project_id`` is None or names a project."""
    if project_id is None:
        return
    result = await db.execute(select(Project.id).where(Project.id == project_id))
    if result.first() is None:
        raise NotFoundError("Project", project_id)


def _scope_clause(project_id: UUID | None):
    if project_id is None:
        return CustomProperty.project_id.is_(None)
    return CustomProperty.project_id == project_id


class CustomPropertyService:
    """Service for managing custom property definitions and their values."""

    VALID_PROPERTY_TYPES = {t.value for t in PropertyType}

    def __init__(
        self,
        db: AsyncSession,
        feed: ChangeFeed = change_feed,
        strict: bool | None = None,
    ):
        self.db = db
        self.feed = feed
        self.strict = get_settings().strict_property_values if strict is None else strict

    # =========================================================================
    # Definition CRUD
    # =========================================================================

    async def _check_definition(
        self,
        project_id: UUID | None,
        name: str,
        property_type: str,
        options: list[str],
        is_required: bool,
        exclude_id: UUID | None = None,
    ) -> None:
        errors: list[FieldError] = []

        if not name:
            errors.append(FieldError("name", "Name is required", "required"))
        else:
            query = select(CustomProperty.id).where(
                _scope_clause(project_id), CustomProperty.name == name
            )
            if exclude_id is not None:
                query = query.where(CustomProperty.id != exclude_id)
            if (await self.db.execute(query)).first() is not None:
                errors.append(
                    FieldError("name", f"A property named '{name}' already exists", "duplicate")
                )

        if property_type not in self.VALID_PROPERTY_TYPES:
            errors.append(
                FieldError("property_type", f"Invalid property type: {property_type}", "invalid_choice")
            )
        elif property_type == PropertyType.DROPDOWN and not options:
            errors.append(
                FieldError("options", "Dropdown properties need at least one option", "required")
            )
        elif property_type == PropertyType.TAGS and is_required and not options:
            errors.append(
                FieldError("options", "Required tag properties need at least one option", "required")
            )

        if errors:
            raise ValidationError(errors)

    async def create_property(
        self,
        project_id: UUID | None,
        name: str,
        property_type: str,
        options: Sequence[str] | None = None,
        is_required: bool = False,
        display_order: int | None = None,
    ) -> CustomProperty:
        """Create a property definition in a scope, appended to the end by default."""
        await ensure_scope(self.db, project_id)
        name = (name or "").strip()
        cleaned = clean_options(options)
        await self._check_definition(project_id, name, property_type, cleaned, is_required)

        if display_order is None:
            max_order_result = await self.db.execute(
                select(func.max(CustomProperty.display_order)).where(_scope_clause(project_id))
            )
            display_order = (max_order_result.scalar() or 0) + 1

        prop = CustomProperty(
            project_id=project_id,
            name=name,
            property_type=property_type,
            options=cleaned,
            is_required=is_required,
            display_order=display_order,
        )
        self.db.add(prop)
        await self.db.commit()
        await self.db.refresh(prop)

        logger.info(
            "custom_property_created",
            property_id=str(prop.id),
            scope=scope_key(project_id),
            property_type=property_type,
        )
        await self.feed.publish(scope_key(project_id), reason="property_created")
        return prop

    async def get_property(self, property_id: UUID) -> CustomProperty:
        """Get a property definition by ID."""
        result = await self.db.execute(
            select(CustomProperty).where(CustomProperty.id == property_id)
        )
        prop = result.scalar_one_or_none()
        if prop is None:
            raise NotFoundError("Custom property", property_id)
        return prop

    async def list_properties(self, project_id: UUID | None) -> Sequence[CustomProperty]:
        """Definitions of a scope by display order, ties broken by id."""
        result = await self.db.execute(
            select(CustomProperty)
            .where(_scope_clause(project_id))
            .order_by(CustomProperty.display_order, CustomProperty.id)
        )
        return result.scalars().all()

    async def definitions(self, project_id: UUID | None) -> list[PropertyDefinition]:
        """Ordered domain definitions for a scope."""
        return [PropertyDefinition.from_model(p) for p in await self.list_properties(project_id)]

    async def update_property(
        self,
        property_id: UUID,
        name: str | None = None,
        property_type: str | None = None,
        options: Sequence[str] | None = None,
        is_required: bool | None = None,
        display_order: int | None = None,
    ) -> CustomProperty:
        """Rename, retype, reorder or change the options of a definition.

        Retyping is allowed but existing values are not migrated; they are read
        back under the new type and may decode as unset.
        """
        prop = await self.get_property(property_id)

        new_name = prop.name if name is None else name.strip()
        new_type = prop.property_type if property_type is None else property_type
        new_options = prop.options if options is None else clean_options(options)
        new_required = prop.is_required if is_required is None else is_required

        await self._check_definition(
            prop.project_id, new_name, new_type, list(new_options), new_required,
            exclude_id=prop.id,
        )

        if new_type != prop.property_type:
            stale_result = await self.db.execute(
                select(func.count())
                .select_from(TaskPropertyValue)
                .where(TaskPropertyValue.property_id == property_id)
            )
            logger.warning(
                "custom_property_retyped",
                property_id=str(property_id),
                old_type=prop.property_type,
                new_type=new_type,
                stale_values=stale_result.scalar() or 0,
            )

        prop.name = new_name
        prop.property_type = new_type
        prop.options = list(new_options)
        prop.is_required = new_required
        if display_order is not None:
            prop.display_order = display_order

        await self.db.commit()
        await self.db.refresh(prop)

        logger.info("custom_property_updated", property_id=str(property_id))
        await self.feed.publish(scope_key(prop.project_id), reason="property_updated")
        return prop

    async def delete_property(self, property_id: UUID) -> int:
        """Delete a definition and every value stored for it, all or nothing.

        Returns the number of values removed.
        """
        prop = await self.get_property(property_id)
        project_id = prop.project_id

        try:
            removed = await self.db.execute(
                delete(TaskPropertyValue).where(TaskPropertyValue.property_id == property_id)
            )
            await self.db.execute(delete(CustomProperty).where(CustomProperty.id == property_id))
            await self.db.flush()

            remaining_result = await self.db.execute(
                select(func.count())
                .select_from(TaskPropertyValue)
                .where(TaskPropertyValue.property_id == property_id)
            )
            remaining = remaining_result.scalar() or 0
            if remaining:
                raise CascadeIntegrityError(property_id, remaining)

            await self.db.commit()
        except CascadeIntegrityError as exc:
            await self.db.rollback()
            logger.error(
                "custom_property_cascade_failed",
                property_id=str(property_id),
                remaining=exc.remaining,
            )
            raise
        except Exception:
            await self.db.rollback()
            raise

        values_removed = removed.rowcount or 0
        logger.info(
            "custom_property_deleted",
            property_id=str(property_id),
            values_removed=values_removed,
        )
        await self.feed.publish(scope_key(project_id), reason="property_deleted")
        return values_removed

    async def reorder_properties(
        self,
        project_id: UUID | None,
        property_order: list[UUID],
    ) -> Sequence[CustomProperty]:
        """Give the listed definitions display orders 1..n; ids outside the scope are ignored."""
        props = {p.id: p for p in await self.list_properties(project_id)}
        for position, property_id in enumerate(property_order, start=1):
            prop = props.get(property_id)
            if prop is not None:
                prop.display_order = position

        await self.db.commit()
        await self.feed.publish(scope_key(project_id), reason="properties_reordered")
        return await self.list_properties(project_id)

    # =========================================================================
    # Values
    # =========================================================================

    async def _get_value_row(self, task_id: UUID, property_id: UUID) -> TaskPropertyValue | None:
        result = await self.db.execute(
            select(TaskPropertyValue).where(
                and_(
                    TaskPropertyValue.task_id == task_id,
                    TaskPropertyValue.property_id == property_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def write_value(
        self,
        task_id: UUID,
        definition: PropertyDefinition,
        value: PropertyValue | None,
    ) -> None:
        """Store an already decoded value without committing; None removes it."""
        existing = await self._get_value_row(task_id, definition.id)
        if value is None:
            if existing is not None:
                await self.db.delete(existing)
            return

        stored = to_storage(value)
        if existing is not None:
            existing.value = stored
        else:
            self.db.add(
                TaskPropertyValue(task_id=task_id, property_id=definition.id, value=stored)
            )

    async def set_task_value(
        self,
        task_id: UUID,
        property_id: UUID,
        raw: Any,
    ) -> PropertyValue | None:
        """Decode ``raw`` and store it on the task; unset input removes the value."""
        task_result = await self.db.execute(select(Task).where(Task.id == task_id))
        task = task_result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task", task_id)

        definition = PropertyDefinition.from_model(await self.get_property(property_id))
        if definition.project_id != task.project_id:
            raise ValidationError(
                [
                    FieldError(
                        field_key(definition),
                        "Property belongs to a different scope than the task",
                        "wrong_scope",
                    )
                ]
            )

        existing = await self._get_value_row(task_id, property_id)
        current = from_storage(definition, existing.value) if existing else None
        value = decode_value(definition, raw, strict=self.strict, current=current)

        if value is None and definition.is_required:
            raise ValidationError(
                [
                    FieldError(
                        field_key(definition),
                        f"Property '{definition.name}' is required",
                        "required",
                    )
                ]
            )

        await self.write_value(task_id, definition, value)
        await self.db.commit()

        logger.info(
            "custom_property_value_set",
            task_id=str(task_id),
            property_id=str(property_id),
            unset=value is None,
        )
        await self.feed.publish(scope_key(task.project_id), reason="value_set")
        return value

    async def get_task_values(
        self,
        task_ids: Sequence[UUID],
        definitions: dict[UUID, PropertyDefinition],
    ) -> dict[UUID, dict[UUID, PropertyValue]]:
        """Decoded values per task for the given definitions."""
        values: dict[UUID, dict[UUID, PropertyValue]] = {task_id: {} for task_id in task_ids}
        if not task_ids:
            return values

        result = await self.db.execute(
            select(TaskPropertyValue).where(TaskPropertyValue.task_id.in_(list(task_ids)))
        )
        for row in result.scalars().all():
            definition = definitions.get(row.property_id)
            if definition is None:
                continue
            value = from_storage(definition, row.value)
            if value is not None:
                values[row.task_id][row.property_id] = value
        return values

    async def delete_task_value(self, task_id: UUID, property_id: UUID) -> bool:
        """Remove a single value; returns whether one existed."""
        task_result = await self.db.execute(select(Task.project_id).where(Task.id == task_id))
        scope_row = task_result.first()
        if scope_row is None:
            raise NotFoundError("Task", task_id)

        result = await self.db.execute(
            delete(TaskPropertyValue).where(
                and_(
                    TaskPropertyValue.task_id == task_id,
                    TaskPropertyValue.property_id == property_id,
                )
            )
        )
        await self.db.commit()

        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(
                "custom_property_value_deleted",
                task_id=str(task_id),
                property_id=str(property_id),
            )
            await self.feed.publish(scope_key(scope_row.project_id), reason="value_deleted")
        return deleted
