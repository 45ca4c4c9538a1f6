"""Categories and shared tags for the global task space."""

from typing import Sequence
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.exceptions import FieldError, NotFoundError, ValidationError
from projecthub.models.project import Task, TaskCategory, TaskTag

logger = structlog.get_logger()

DEFAULT_COLOR = "#6b7280"


class TaxonomyService:
    """Create-then-select registry: callers add the returned row to their selection."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _check_name(
        self,
        model: type[TaskCategory] | type[TaskTag],
        name: str,
        exclude_id: UUID | None = None,
    ) -> None:
        if not name:
            raise ValidationError([FieldError("name", "Name is required", "required")])
        query = select(model.id).where(func.lower(model.name) == name.lower())
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        result = await self.db.execute(query)
        if result.first() is not None:
            raise ValidationError(
                [FieldError("name", f"'{name}' already exists", "duplicate")]
            )

    async def _get(self, model: type[TaskCategory] | type[TaskTag], entity_id: UUID):
        row = await self.db.get(model, entity_id)
        if row is None:
            raise NotFoundError(model.__name__, entity_id)
        return row

    # =========================================================================
    # Categories
    # =========================================================================

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
        created_by_id: UUID | None = None,
    ) -> TaskCategory:
        name = (name or "").strip()
        await self._check_name(TaskCategory, name)

        category = TaskCategory(
            name=name,
            description=description,
            color=color or DEFAULT_COLOR,
            icon=icon or "folder",
            created_by_id=created_by_id,
        )
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)

        logger.info("task_category_created", category_id=str(category.id), name=name)
        return category

    async def list_categories(self) -> Sequence[TaskCategory]:
        result = await self.db.execute(select(TaskCategory).order_by(TaskCategory.name))
        return result.scalars().all()

    async def update_category(self, category_id: UUID, **fields) -> TaskCategory:
        """Patch name, description, color or icon; a renamed category must stay unique."""
        category = await self._get(TaskCategory, category_id)
        if "name" in fields:
            fields["name"] = (fields["name"] or "").strip()
            await self._check_name(TaskCategory, fields["name"], exclude_id=category_id)

        for field, value in fields.items():
            setattr(category, field, value)
        await self.db.commit()
        await self.db.refresh(category)

        logger.info("task_category_updated", category_id=str(category_id), fields=sorted(fields))
        return category

    async def delete_category(self, category_id: UUID) -> None:
        """Delete a category; its tasks stay, uncategorized."""
        await self._get(TaskCategory, category_id)
        await self.db.execute(
            update(Task)
            .where(Task.category_id == category_id)
            .values(category_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(delete(TaskCategory).where(TaskCategory.id == category_id))
        await self.db.commit()

        logger.info("task_category_deleted", category_id=str(category_id))

    # =========================================================================
    # Tags
    # =========================================================================

    async def create_tag(
        self,
        name: str,
        color: str | None = None,
        created_by_id: UUID | None = None,
    ) -> TaskTag:
        name = (name or "").strip()
        await self._check_name(TaskTag, name)

        tag = TaskTag(name=name, color=color or DEFAULT_COLOR, created_by_id=created_by_id)
        self.db.add(tag)
        await self.db.commit()
        await self.db.refresh(tag)

        logger.info("task_tag_created", tag_id=str(tag.id), name=name)
        return tag

    async def list_tags(self) -> Sequence[TaskTag]:
        result = await self.db.execute(select(TaskTag).order_by(TaskTag.name))
        return result.scalars().all()

    async def update_tag(self, tag_id: UUID, **fields) -> TaskTag:
        tag = await self._get(TaskTag, tag_id)
        if "name" in fields:
            fields["name"] = (fields["name"] or "").strip()
            await self._check_name(TaskTag, fields["name"], exclude_id=tag_id)

        for field, value in fields.items():
            setattr(tag, field, value)
        await self.db.commit()
        await self.db.refresh(tag)

        logger.info("task_tag_updated", tag_id=str(tag_id), fields=sorted(fields))
        return tag

    async def delete_tag(self, tag_id: UUID) -> None:
        """Remove a tag from the shared vocabulary; tasks keep their tag strings."""
        await self._get(TaskTag, tag_id)
        await self.db.execute(delete(TaskTag).where(TaskTag.id == tag_id))
        await self.db.commit()

        logger.info("task_tag_deleted", tag_id=str(tag_id))
