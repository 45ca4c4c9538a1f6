"""Typed value codec for custom property values.

Every custom property value crosses this module on its way in (raw form
input -> typed value) and out (typed value -> stored JSON, form input or
display text). Nothing untyped leaks past it.

"Unset" is represented by ``None``. In lenient mode (the default) malformed
input degrades to unset instead of raising, so an incidental empty field
never blocks a form; ``strict=True`` raises ``InvalidValueError`` instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Any, Iterable, Union

from projecthub.domain.enums import PropertyType
from projecthub.exceptions import InvalidValueError

if TYPE_CHECKING:
    from projecthub.domain.records import PropertyDefinition

UNSET_DISPLAY = "—"

_TRUE_STRINGS = {"true", "1", "yes", "y", "on", "t"}
_URL_PREFIXES = ("http://", "https://")


@dataclass(frozen=True, slots=True)
class TextValue:
    value: str


@dataclass(frozen=True, slots=True)
class NumberValue:
    value: float


@dataclass(frozen=True, slots=True)
class DateValue:
    value: datetime  # always timezone-aware UTC


@dataclass(frozen=True, slots=True)
class BooleanValue:
    value: bool


@dataclass(frozen=True, slots=True)
class DropdownValue:
    value: str


@dataclass(frozen=True, slots=True)
class TagsValue:
    value: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class UrlValue:
    value: str


PropertyValue = Union[
    TextValue, NumberValue, DateValue, BooleanValue, DropdownValue, TagsValue, UrlValue
]


def field_key(definition: PropertyDefinition) -> str:
    """Error key for a custom property, the same on every path that reports one."""
    return f"custom_properties.{definition.id}"


VALUE_CLASSES: dict[PropertyType, type] = {
    PropertyType.TEXT: TextValue,
    PropertyType.NUMBER: NumberValue,
    PropertyType.DATE: DateValue,
    PropertyType.BOOLEAN: BooleanValue,
    PropertyType.DROPDOWN: DropdownValue,
    PropertyType.TAGS: TagsValue,
    PropertyType.URL: UrlValue,
}


# =============================================================================
# Raw input -> typed value
# =============================================================================


def decode_value(
    definition: PropertyDefinition,
    raw: Any,
    *,
    strict: bool = False,
    current: PropertyValue | None = None,
) -> PropertyValue | None:
    """Convert raw form input into the canonical value for ``definition``.

    ``current`` is the value already stored on the task; it only matters for
    tags restricted by an option list, where values already present stay
    selectable.
    """
    property_type = PropertyType(definition.property_type)
    field = field_key(definition)

    if property_type == PropertyType.BOOLEAN:
        return BooleanValue(_parse_bool(raw))

    if property_type == PropertyType.TAGS:
        return _decode_tags(definition, raw, strict=strict, current=current)

    if property_type == PropertyType.NUMBER:
        if _is_blank(raw):
            return None
        number = _parse_number(raw)
        if number is None:
            if strict:
                raise InvalidValueError(field, f"'{raw}' is not a number", raw)
            return None
        return NumberValue(number)

    if property_type == PropertyType.DATE:
        if _is_blank(raw):
            return None
        instant = parse_instant(raw)
        if instant is None:
            if strict:
                raise InvalidValueError(field, f"'{raw}' is not a valid date", raw)
            return None
        return DateValue(instant)

    # text, url and dropdown are all trimmed strings
    text = _clean_string(raw)
    if text is None:
        return None

    if property_type == PropertyType.URL:
        if strict and not text.startswith(_URL_PREFIXES):
            raise InvalidValueError(field, "URL must start with http:// or https://", raw)
        return UrlValue(text)

    if property_type == PropertyType.DROPDOWN:
        if strict and text not in definition.options:
            raise InvalidValueError(
                field, f"'{text}' is not one of: {', '.join(definition.options)}", raw
            )
        return DropdownValue(text)

    return TextValue(text)


def _decode_tags(
    definition: PropertyDefinition,
    raw: Any,
    *,
    strict: bool,
    current: PropertyValue | None,
) -> TagsValue | None:
    if _is_blank(raw):
        return None
    if isinstance(raw, str):
        items: Iterable[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        items = [raw]

    tags = [t for t in (_clean_string(item) for item in items) if t is not None]

    options = list(definition.options)
    if options:
        allowed = set(options)
        if isinstance(current, TagsValue):
            allowed.update(current.value)
        rejected = [t for t in tags if t not in allowed]
        if rejected and strict:
            raise InvalidValueError(
                field_key(definition), f"Invalid options: {', '.join(rejected)}", raw
            )
        # Restricted tags behave as a set, in first-seen order
        seen: set[str] = set()
        kept = []
        for tag in tags:
            if tag in allowed and tag not in seen:
                seen.add(tag)
                kept.append(tag)
        tags = kept

    if not tags:
        return None
    return TagsValue(tuple(tags))


def _is_blank(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip()
    if isinstance(raw, (list, tuple)):
        return len(raw) == 0
    return False


def _clean_string(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _parse_bool(raw: Any) -> bool:
    if raw is None:
        return False
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUE_STRINGS
    return bool(raw)


def _parse_number(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    try:
        number = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_instant(raw: Any) -> datetime | None:
    """Parse a date or datetime into a timezone-aware UTC instant.

    Naive inputs are taken to be UTC. Returns None for anything unparseable.
    """
    if isinstance(raw, datetime):
        instant = raw
    elif isinstance(raw, date):
        instant = datetime.combine(raw, time.min)
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            instant = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


# =============================================================================
# Typed value -> form input / storage / display
# =============================================================================


def encode_value(definition: PropertyDefinition, value: PropertyValue | None) -> Any:
    """Render a typed value back into the raw form a form control sends.

    ``decode_value(definition, encode_value(definition, v)) == v`` for every
    valid value.
    """
    property_type = PropertyType(definition.property_type)
    if value is None:
        if property_type == PropertyType.BOOLEAN:
            return False
        if property_type == PropertyType.TAGS:
            return []
        return ""

    if isinstance(value, NumberValue):
        return repr(value.value)
    if isinstance(value, DateValue):
        return value.value.isoformat()
    if isinstance(value, BooleanValue):
        return value.value
    if isinstance(value, TagsValue):
        return list(value.value)
    return value.value


def to_storage(value: PropertyValue) -> dict[str, Any]:
    """JSON document stored for a value."""
    for property_type, cls in VALUE_CLASSES.items():
        if isinstance(value, cls):
            break
    else:
        raise TypeError(f"Unsupported property value: {value!r}")

    payload: Any = value.value
    if isinstance(value, DateValue):
        payload = value.value.isoformat()
    elif isinstance(value, TagsValue):
        payload = list(value.value)
    return {"type": property_type.value, "value": payload}


def from_storage(
    definition: PropertyDefinition, stored: dict[str, Any] | None
) -> PropertyValue | None:
    """Read a stored JSON document back under the definition's current type.

    A value written under a different type (the definition was retyped) only
    survives if it is a scalar that decodes cleanly under the new type, so
    ``"5"`` stored as text still reads as a number. Anything else, and any
    stored value read as a boolean, comes back unset.
    """
    if not stored:
        return None
    raw = stored.get("value")
    property_type = PropertyType(definition.property_type)

    stored_type = stored.get("type")
    if stored_type is not None and stored_type != property_type.value:
        if property_type == PropertyType.BOOLEAN:
            return None
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            return None
        try:
            return decode_value(definition, raw, strict=True)
        except InvalidValueError:
            return None

    current = None
    if property_type == PropertyType.TAGS and isinstance(raw, list):
        # Tags stored earlier stay readable even if the option list changed
        current = TagsValue(tuple(str(v) for v in raw))
    return decode_value(definition, raw, strict=False, current=current)


def format_value(value: PropertyValue | None) -> str:
    """Display text for a value; unset renders as an em dash."""
    if value is None:
        return UNSET_DISPLAY
    if isinstance(value, BooleanValue):
        return "Yes" if value.value else "No"
    if isinstance(value, NumberValue):
        number = value.value
        return str(int(number)) if number.is_integer() else str(number)
    if isinstance(value, DateValue):
        return value.value.date().isoformat()
    if isinstance(value, TagsValue):
        return ", ".join(value.value) if value.value else UNSET_DISPLAY
    return value.value or UNSET_DISPLAY


def to_json(value: PropertyValue | None) -> Any:
    """JSON-friendly plain value for API responses."""
    if value is None:
        return None
    return to_storage(value)["value"]
