"""Discussion threads on tasks."""

from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from projecthub.domain.records import scope_key
from projecthub.exceptions import FieldError, NotFoundError, ValidationError
from projecthub.models.project import Task, TaskComment
from projecthub.models.user import User
from projecthub.services.change_feed import ChangeFeed, change_feed

logger = structlog.get_logger()


def _clean_content(content: str | None) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError([FieldError("content", "Comment cannot be empty", "required")])
    return content


class CommentService:
    """Comments are listed oldest first; editing stamps ``edited_at``."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed

    async def _task(self, task_id: UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def _load(self, task_id: UUID, comment_id: UUID) -> TaskComment:
        result = await self.db.execute(
            select(TaskComment)
            .options(selectinload(TaskComment.user))
            .where(TaskComment.id == comment_id, TaskComment.task_id == task_id)
            .execution_options(populate_existing=True)
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        return comment

    async def list_comments(self, task_id: UUID) -> Sequence[TaskComment]:
        await self._task(task_id)
        result = await self.db.execute(
            select(TaskComment)
            .options(selectinload(TaskComment.user))
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at, TaskComment.id)
        )
        return result.scalars().all()

    async def add_comment(self, task_id: UUID, user_id: UUID, content: str) -> TaskComment:
        task = await self._task(task_id)
        content = _clean_content(content)
        if await self.db.get(User, user_id) is None:
            raise ValidationError([FieldError("user_id", "Unknown member", "unknown_reference")])

        comment = TaskComment(task_id=task_id, user_id=user_id, content=content)
        self.db.add(comment)
        await self.db.commit()

        logger.info("task_comment_created", task_id=str(task_id), comment_id=str(comment.id))
        await self.feed.publish(scope_key(task.project_id), reason="comment_added")
        return await self._load(task_id, comment.id)

    async def update_comment(self, task_id: UUID, comment_id: UUID, content: str) -> TaskComment:
        comment = await self._load(task_id, comment_id)
        comment.content = _clean_content(content)
        comment.edited_at = datetime.now(timezone.utc)
        await self.db.commit()

        logger.info("task_comment_updated", task_id=str(task_id), comment_id=str(comment_id))
        return await self._load(task_id, comment_id)

    async def delete_comment(self, task_id: UUID, comment_id: UUID) -> None:
        comment = await self._load(task_id, comment_id)
        task = await self._task(task_id)
        await self.db.delete(comment)
        await self.db.commit()

        logger.info("task_comment_deleted", task_id=str(task_id), comment_id=str(comment_id))
        await self.feed.publish(scope_key(task.project_id), reason="comment_deleted")
