"""SQLAlchemy models package."""

from projecthub.models.user import User
from projecthub.models.project import (
    CustomProperty,
    Project,
    Task,
    TaskCategory,
    TaskComment,
    TaskPropertyValue,
    TaskSequence,
    TaskTag,
)

__all__ = [
    "CustomProperty",
    "Project",
    "Task",
    "TaskCategory",
    "TaskComment",
    "TaskPropertyValue",
    "TaskSequence",
    "TaskTag",
    "User",
]
