# tests/test_codec.py - custom property value codec
from datetime import date, datetime, timezone

import pytest

from projecthub.domain.codec import (
    UNSET_DISPLAY,
    BooleanValue,
    DateValue,
    DropdownValue,
    NumberValue,
    TagsValue,
    TextValue,
    UrlValue,
    decode_value,
    encode_value,
    format_value,
    from_storage,
    parse_instant,
    to_storage,
)
from projecthub.domain.enums import PropertyType
from projecthub.exceptions import InvalidValueError, ValidationError
from tests.conftest import make_definition


def test_text_is_trimmed_and_blank_is_unset():
    text = make_definition(PropertyType.TEXT)
    assert decode_value(text, "  hello ") == TextValue("hello")
    assert decode_value(text, "   ") is None
    assert decode_value(text, None) is None


def test_number_parses_and_malformed_is_unset_when_lenient():
    number = make_definition(PropertyType.NUMBER)
    assert decode_value(number, "42") == NumberValue(42.0)
    assert decode_value(number, " 3.5 ") == NumberValue(3.5)
    assert decode_value(number, 7) == NumberValue(7.0)
    assert decode_value(number, "abc") is None
    assert decode_value(number, "nan") is None
    assert decode_value(number, True) is None
    assert decode_value(number, "") is None


def test_number_strict_mode_raises_field_keyed_error():
    number = make_definition(PropertyType.NUMBER, name="Story points")
    with pytest.raises(InvalidValueError) as exc_info:
        decode_value(number, "abc", strict=True)
    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.code == "INVALID_VALUE"
    assert list(exc_info.value.by_field()) == [f"custom_properties.{number.id}"]
    # Empty input is still just unset
    assert decode_value(number, "", strict=True) is None


def test_boolean_is_always_set():
    flag = make_definition(PropertyType.BOOLEAN)
    assert decode_value(flag, "true") == BooleanValue(True)
    assert decode_value(flag, "Yes") == BooleanValue(True)
    assert decode_value(flag, "0") == BooleanValue(False)
    assert decode_value(flag, "") == BooleanValue(False)
    assert decode_value(flag, None) == BooleanValue(False)
    assert decode_value(flag, 1) == BooleanValue(True)


def test_date_accepts_dates_and_iso_strings_as_utc():
    due = make_definition(PropertyType.DATE)
    assert decode_value(due, "2024-03-01") == DateValue(datetime(2024, 3, 1, tzinfo=timezone.utc))
    assert decode_value(due, "2024-03-01T10:30:00Z") == DateValue(
        datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)
    )
    assert decode_value(due, date(2024, 3, 1)).value.tzinfo is not None
    assert decode_value(due, "not a date") is None


def test_parse_instant_converts_offsets_to_utc():
    instant = parse_instant("2024-03-01T12:00:00+02:00")
    assert instant == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert instant.utcoffset().total_seconds() == 0


def test_dropdown_lenient_keeps_value_strict_checks_options():
    stage = make_definition(PropertyType.DROPDOWN, options=["Draft", "Review"])
    assert decode_value(stage, " Review ") == DropdownValue("Review")
    assert decode_value(stage, "Shipped") == DropdownValue("Shipped")
    with pytest.raises(InvalidValueError):
        decode_value(stage, "Shipped", strict=True)


def test_url_strict_requires_scheme():
    link = make_definition(PropertyType.URL)
    assert decode_value(link, "https://example.com") == UrlValue("https://example.com")
    assert decode_value(link, "example.com") == UrlValue("example.com")
    with pytest.raises(InvalidValueError):
        decode_value(link, "example.com", strict=True)


def test_free_tags_accept_list_or_comma_separated_string():
    tags = make_definition(PropertyType.TAGS)
    assert decode_value(tags, "a, b ,c") == TagsValue(("a", "b", "c"))
    assert decode_value(tags, ["x", " y "]) == TagsValue(("x", "y"))
    assert decode_value(tags, []) is None
    assert decode_value(tags, " , ") is None


def test_restricted_tags_drop_unknown_values_and_duplicates():
    tags = make_definition(PropertyType.TAGS, options=["red", "green"])
    assert decode_value(tags, ["green", "blue", "green", "red"]) == TagsValue(("green", "red"))
    assert decode_value(tags, ["blue"]) is None
    with pytest.raises(InvalidValueError):
        decode_value(tags, ["blue"], strict=True)


def test_restricted_tags_keep_values_already_on_the_task():
    tags = make_definition(PropertyType.TAGS, options=["red"])
    current = TagsValue(("legacy",))
    assert decode_value(tags, ["legacy", "red"], current=current) == TagsValue(("legacy", "red"))


@pytest.mark.parametrize(
    "property_type,raw",
    [
        (PropertyType.TEXT, "hello"),
        (PropertyType.NUMBER, "12.25"),
        (PropertyType.DATE, "2024-05-06T07:08:09+00:00"),
        (PropertyType.BOOLEAN, True),
        (PropertyType.DROPDOWN, "Review"),
        (PropertyType.TAGS, ["a", "b"]),
        (PropertyType.URL, "https://example.com/x"),
    ],
)
def test_encode_then_decode_returns_the_same_value(property_type, raw):
    definition = make_definition(property_type, options=["Review"] if property_type == PropertyType.DROPDOWN else [])
    value = decode_value(definition, raw)
    assert decode_value(definition, encode_value(definition, value)) == value


def test_encode_unset_gives_empty_form_input():
    assert encode_value(make_definition(PropertyType.TEXT), None) == ""
    assert encode_value(make_definition(PropertyType.TAGS), None) == []
    assert encode_value(make_definition(PropertyType.BOOLEAN), None) is False


def test_storage_document_reads_back():
    due = make_definition(PropertyType.DATE)
    value = decode_value(due, "2024-01-02")
    stored = to_storage(value)
    assert stored == {"type": "date", "value": "2024-01-02T00:00:00+00:00"}
    assert from_storage(due, stored) == value
    assert from_storage(due, None) is None


def test_retyped_values_read_leniently():
    # Stored as text, definition now says number
    number = make_definition(PropertyType.NUMBER)
    assert from_storage(number, {"type": "text", "value": "five"}) is None
    assert from_storage(number, {"type": "text", "value": "5"}) == NumberValue(5.0)

    # Nothing stored under another type reads as a boolean
    flag = make_definition(PropertyType.BOOLEAN)
    assert from_storage(flag, to_storage(TextValue("yes please"))) is None
    assert from_storage(flag, to_storage(TextValue("yes"))) is None
    assert from_storage(flag, to_storage(BooleanValue(False))) == BooleanValue(False)

    # Lists and out-of-options values do not survive either
    stage = make_definition(PropertyType.DROPDOWN, options=["Draft"])
    assert from_storage(stage, to_storage(TagsValue(("Draft",)))) is None
    assert from_storage(stage, to_storage(TextValue("Shipped"))) is None
    assert from_storage(stage, to_storage(TextValue("Draft"))) == DropdownValue("Draft")


def test_format_value():
    assert format_value(None) == UNSET_DISPLAY
    assert format_value(NumberValue(3.0)) == "3"
    assert format_value(NumberValue(2.5)) == "2.5"
    assert format_value(BooleanValue(False)) == "No"
    assert format_value(TagsValue(("a", "b"))) == "a, b"
    assert format_value(DateValue(datetime(2024, 1, 2, 15, tzinfo=timezone.utc))) == "2024-01-02"
