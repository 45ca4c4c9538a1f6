"""Project, task and custom property models."""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.db.base import Base, BaseModel

if TYPE_CHECKING:
    from projecthub.models.user import User


class Project(BaseModel):
    """A project: the scope for its tasks, custom properties and task numbers."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="active"
    )  # active, completed, archived, on_hold

    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    tasks: Mapped[list["Task"]] = relationship(
        "Task", back_populates="project", passive_deletes=True
    )
    custom_properties: Mapped[list["CustomProperty"]] = relationship(
        "CustomProperty", back_populates="project", passive_deletes=True
    )

    def __repr__(self) -> str:
        try:
            return f"<Project {self.name}>"
        except Exception:
            return "<Project detached>"


class TaskSequence(Base):
    """Last task number handed out in a scope. Numbers are never reused."""

    __tablename__ = "task_sequences"

    scope: Mapped[str] = mapped_column(String(64), primary_key=True)  # project id or "global"
    last_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<TaskSequence {self.scope}={self.last_number}>"


class TaskCategory(BaseModel):
    """Category for global tasks."""

    __tablename__ = "task_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#6b7280")
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="folder")
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TaskCategory {self.name}>"


class TaskTag(BaseModel):
    """Shared tag vocabulary for global tasks."""

    __tablename__ = "task_tags"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#6b7280")
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TaskTag {self.name}>"


class Task(BaseModel):
    """Task within a project, or in the global task space when project_id is None."""

    __tablename__ = "tasks"

    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    task_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Basic info
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status and priority
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="todo"
    )  # todo, in-progress, completed (+ cancelled, on-hold for global tasks)
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # P1..P5 for project tasks, low/medium/high/urgent for global tasks

    # Assignment
    assigned_to: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_team: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Timeline
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Free-form collections, kept in insertion order
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    labels: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    supporting_links: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Planning
    sprint: Mapped[str | None] = mapped_column(String(100), nullable=True)
    milestone: Mapped[str | None] = mapped_column(String(100), nullable=True)
    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Manual position within the scope, set on create and by reorder
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Global tasks only
    category_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("task_categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Recurrence descriptor, consumed by an external scheduler
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurring_pattern: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # daily, weekly, monthly, yearly
    recurring_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    project: Mapped["Project | None"] = relationship("Project", back_populates="tasks")
    assignee: Mapped["User | None"] = relationship("User", foreign_keys=[assigned_to])
    property_values: Mapped[list["TaskPropertyValue"]] = relationship(
        "TaskPropertyValue",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    comments: Mapped[list["TaskComment"]] = relationship(
        "TaskComment",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TaskComment.created_at",
    )

    def __repr__(self) -> str:
        try:
            return f"<Task #{self.task_number} {self.title[:30]}>"
        except Exception:
            return "<Task detached>"


class CustomProperty(BaseModel):
    """User-defined typed attribute for tasks in a scope."""

    __tablename__ = "custom_properties"
    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_custom_property_name"),
    )

    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    property_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # text, number, date, boolean, dropdown, tags, url
    options: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    project: Mapped["Project | None"] = relationship(
        "Project", back_populates="custom_properties"
    )
    values: Mapped[list["TaskPropertyValue"]] = relationship(
        "TaskPropertyValue", back_populates="definition", passive_deletes=True
    )

    def __repr__(self) -> str:
        try:
            return f"<CustomProperty {self.name} ({self.property_type})>"
        except Exception:
            return "<CustomProperty detached>"


class TaskPropertyValue(BaseModel):
    """Value of one custom property on one task. No row means unset."""

    __tablename__ = "task_property_values"
    __table_args__ = (
        UniqueConstraint("task_id", "property_id", name="uq_task_property_value"),
    )

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("custom_properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # {"type": ..., "value": ...} as written by the value codec
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Relationships
    task: Mapped["Task"] = relationship("Task", back_populates="property_values")
    definition: Mapped["CustomProperty"] = relationship("CustomProperty", back_populates="values")

    def __repr__(self) -> str:
        return f"<TaskPropertyValue task={self.task_id} property={self.property_id}>"


class TaskComment(BaseModel):
    """Comment on a task, oldest first."""

    __tablename__ = "task_comments"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Edit tracking
    edited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    task: Mapped["Task"] = relationship("Task", back_populates="comments")
    user: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<TaskComment {self.id} on task={self.task_id}>"
