"""Pure task domain: value codec, validation, query engine and projections."""

from projecthub.domain.codec import PropertyValue, decode_value, encode_value
from projecthub.domain.query import TaskFilters, TaskGroupBy, TaskSort, query_tasks
from projecthub.domain.records import PropertyDefinition, TaskRecord
from projecthub.domain.validation import validate_task

__all__ = [
    "PropertyDefinition",
    "PropertyValue",
    "TaskFilters",
    "TaskGroupBy",
    "TaskRecord",
    "TaskSort",
    "decode_value",
    "encode_value",
    "query_tasks",
    "validate_task",
]
