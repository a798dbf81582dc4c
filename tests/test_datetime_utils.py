"""Tests for UTC datetime handling."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from user_records.common.datetime_utils import (
    UTCDateTime,
    format_iso8601_utc,
    parse_iso8601,
    utcnow,
)

pytestmark = pytest.mark.unit


def test_utcnow_is_aware():
    assert utcnow().tzinfo is not None


def test_format_keeps_microseconds():
    dt = datetime(2025, 1, 15, 10, 30, 0, 123456, tzinfo=UTC)
    assert format_iso8601_utc(dt) == "2025-01-15T10:30:00.123456Z"


def test_format_converts_offsets_to_utc():
    dt = datetime(2025, 1, 15, 12, 30, tzinfo=timezone(timedelta(hours=2)))
    assert format_iso8601_utc(dt) == "2025-01-15T10:30:00.000000Z"


def test_naive_datetime_rejected():
    with pytest.raises(ValueError, match="Naive datetime"):
        format_iso8601_utc(datetime(2025, 1, 15, 10, 30))


def test_parse_z_suffix():
    assert parse_iso8601("2025-01-15T10:30:00.000000Z") == datetime(2025, 1, 15, 10, 30, tzinfo=UTC)


def test_parse_date_only_is_midnight_utc():
    assert parse_iso8601("1990-05-01") == datetime(1990, 5, 1, tzinfo=UTC)


def test_parse_without_offset_rejected():
    with pytest.raises(ValueError):
        parse_iso8601("2025-01-15T10:30:00")


class TestUTCDateTime:
    def setup_method(self):
        self.column_type = UTCDateTime()

    def test_bind_and_result(self):
        dt = datetime(2025, 1, 15, 10, 30, 0, 5, tzinfo=UTC)
        stored = self.column_type.process_bind_param(dt, None)

        assert stored == "2025-01-15T10:30:00.000005Z"
        assert self.column_type.process_result_value(stored, None) == dt

    def test_bind_accepts_iso_string_with_offset(self):
        stored = self.column_type.process_bind_param("2025-01-15T12:30:00+02:00", None)
        assert stored == "2025-01-15T10:30:00.000000Z"

    def test_bind_accepts_date(self):
        stored = self.column_type.process_bind_param(date(1990, 5, 1), None)
        assert stored == "1990-05-01T00:00:00.000000Z"

    def test_bind_accepts_date_only_string(self):
        stored = self.column_type.process_bind_param("1990-05-01", None)
        assert stored == "1990-05-01T00:00:00.000000Z"

    def test_bind_rejects_naive(self):
        with pytest.raises(ValueError):
            self.column_type.process_bind_param(datetime(2025, 1, 15), None)

    def test_none_passes_through(self):
        assert self.column_type.process_bind_param(None, None) is None
        assert self.column_type.process_result_value(None, None) is None

    def test_stored_values_sort_chronologically(self):
        earlier = datetime(2025, 1, 15, 9, 59, 59, 999999, tzinfo=UTC)
        later = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)
        assert self.column_type.process_bind_param(earlier, None) < self.column_type.process_bind_param(
            later, None
        )
