"""Domain exceptions.

Structured errors shared by the domain layer, the services and the HTTP
surface. Every error carries a human readable message and a stable code.
"""

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single problem with a single field."""

    field: str
    message: str
    code: str = "invalid"


class ProjectHubError(Exception):
    """Base exception for task core errors."""

    def __init__(self, message: str, code: str = "PROJECTHUB_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(ProjectHubError):
    """One or more fields failed validation.

    Always carries the complete list of violations so a form can highlight
    every offending field at once.
    """

    def __init__(self, errors: Iterable[FieldError], message: str | None = None):
        self.errors = list(errors)
        fields = ", ".join(sorted({e.field for e in self.errors}))
        super().__init__(
            message=message or f"Validation failed for: {fields}",
            code="VALIDATION_ERROR",
        )

    def by_field(self) -> dict[str, list[str]]:
        """Group error messages by field name, preserving order."""
        grouped: dict[str, list[str]] = {}
        for error in self.errors:
            grouped.setdefault(error.field, []).append(error.message)
        return grouped


class InvalidValueError(ValidationError):
    """A raw custom property value could not be decoded (strict mode only)."""

    def __init__(self, field: str, message: str, raw: Any = None):
        self.raw = raw
        super().__init__([FieldError(field=field, message=message, code="invalid_value")])
        self.code = "INVALID_VALUE"


class NotFoundError(ProjectHubError):
    """A task, property definition or other record does not exist."""

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message=f"{entity} {entity_id} not found",
            code="NOT_FOUND",
        )


class CascadeIntegrityError(ProjectHubError):
    """Deleting a property definition left dependent values behind.

    Never recoverable: the surrounding transaction is rolled back.
    """

    def __init__(self, property_id: UUID, remaining: int):
        self.property_id = property_id
        self.remaining = remaining
        super().__init__(
            message=(
                f"Deleting custom property {property_id} left "
                f"{remaining} value(s) behind"
            ),
            code="CASCADE_INTEGRITY_ERROR",
        )
