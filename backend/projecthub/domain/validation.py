"""Task validation.

``validate_task`` never stops at the first problem: callers get every
violated field at once so a form can highlight all of them.
"""

import re
from typing import Iterable

from projecthub.config import get_settings
from projecthub.domain.codec import field_key
from projecthub.domain.enums import priorities_for, statuses_for
from projecthub.domain.recurrence import RecurrencePattern
from projecthub.domain.records import PropertyDefinition, TaskRecord
from projecthub.exceptions import FieldError, ValidationError

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def validate_task(
    task: TaskRecord,
    definitions: Iterable[PropertyDefinition] = (),
) -> list[FieldError]:
    """Return every field error for ``task``; an empty list means valid."""
    settings = get_settings()
    errors: list[FieldError] = []

    title = (task.title or "").strip()
    if not title:
        errors.append(FieldError("title", "Title is required", "required"))
    elif len(title) < settings.title_min_length:
        errors.append(
            FieldError(
                "title",
                f"Title must be at least {settings.title_min_length} characters",
                "too_short",
            )
        )
    elif len(title) > settings.title_max_length:
        errors.append(
            FieldError(
                "title",
                f"Title must be at most {settings.title_max_length} characters",
                "too_long",
            )
        )

    if task.description and len(task.description) > settings.description_max_length:
        errors.append(
            FieldError(
                "description",
                f"Description must be at most {settings.description_max_length} characters",
                "too_long",
            )
        )

    for index, link in enumerate(task.supporting_links):
        if not isinstance(link, str) or not URL_PATTERN.match(link):
            errors.append(
                FieldError(
                    f"supporting_links.{index}",
                    "Link must start with http:// or https://",
                    "invalid_url",
                )
            )

    allowed_statuses = statuses_for(task.is_project_task)
    if task.status not in allowed_statuses:
        errors.append(
            FieldError(
                "status",
                f"Status must be one of: {', '.join(allowed_statuses)}",
                "invalid_choice",
            )
        )

    allowed_priorities = priorities_for(task.is_project_task)
    if task.priority not in allowed_priorities:
        errors.append(
            FieldError(
                "priority",
                f"Priority must be one of: {', '.join(allowed_priorities)}",
                "invalid_choice",
            )
        )

    if task.is_recurring:
        if task.recurring_pattern not in {p.value for p in RecurrencePattern}:
            errors.append(
                FieldError(
                    "recurring_pattern",
                    "Recurring tasks need a daily, weekly, monthly or yearly pattern",
                    "required",
                )
            )
        if task.recurring_interval < 1:
            errors.append(
                FieldError(
                    "recurring_interval",
                    "Recurring interval must be at least 1",
                    "out_of_range",
                )
            )

    for definition in definitions:
        if not definition.is_required:
            continue
        # Explicit false counts as set for booleans
        if task.custom_properties.get(definition.id) is None:
            errors.append(
                FieldError(
                    field_key(definition),
                    f"Property '{definition.name}' is required",
                    "required",
                )
            )

    return errors


def ensure_valid(
    task: TaskRecord,
    definitions: Iterable[PropertyDefinition] = (),
) -> None:
    """Raise ``ValidationError`` carrying every field error, if any."""
    errors = validate_task(task, definitions)
    if errors:
        raise ValidationError(errors)
