"""Tests for time helpers."""

from datetime import datetime, timezone

import pytest

from okra.timeutil import format_age, from_millis, parse_time_reference, to_millis

from conftest import T0

HOUR = 3600 * 1000
DAY = 24 * HOUR
# 2025-01-15T12:30:00Z
NOW = T0 + 12 * HOUR + 30 * 60 * 1000


def test_millis_conversions():
    dt = datetime(2025, 1, 15, tzinfo=timezone.utc)
    assert to_millis(dt) == T0
    assert from_millis(T0) == dt


def test_naive_datetimes_are_utc():
    assert to_millis(datetime(2025, 1, 15)) == T0


def test_parse_iso_date():
    assert parse_time_reference("2025-01-15", NOW) == T0
    assert parse_time_reference("2025-01-15T12:30:00", NOW) == NOW


def test_parse_named_references():
    assert parse_time_reference("now", NOW) == NOW
    assert parse_time_reference("Today", NOW) == T0
    assert parse_time_reference("yesterday", NOW) == T0 - DAY
    assert parse_time_reference("tomorrow", NOW) == T0 + DAY
    assert parse_time_reference("last week", NOW) == NOW - 7 * DAY
    assert parse_time_reference("last month", NOW) == to_millis(datetime(2024, 12, 15, 12, 30, tzinfo=timezone.utc))


def test_parse_spans_ago():
    assert parse_time_reference("2 days ago", NOW) == NOW - 2 * DAY
    assert parse_time_reference("1 hour ago", NOW) == NOW - HOUR
    assert parse_time_reference("3 weeks ago", NOW) == NOW - 21 * DAY
    assert parse_time_reference("  90 seconds ago ", NOW) == NOW - 90_000


def test_parse_epoch_millis():
    assert parse_time_reference(str(T0), NOW) == T0


def test_parse_garbage():
    with pytest.raises(ValueError):
        parse_time_reference("banana", NOW)


def test_parse_out_of_range_is_value_error():
    for ref in ["9" * 15, "9" * 40, "99999 years ago"]:
        with pytest.raises(ValueError):
            parse_time_reference(ref, NOW)


def test_format_age():
    assert format_age(NOW - 2 * DAY, NOW) == "2 days ago"
    assert format_age(NOW - HOUR, NOW) == "1 hour ago"
    assert format_age(NOW - 5000, NOW) == "5 seconds ago"
    assert format_age(NOW - 400 * DAY, NOW) == "1 year ago"
    assert format_age(NOW + DAY, NOW) == "in the future"
