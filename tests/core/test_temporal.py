"""Tests for meetd.core.temporal timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from meetd.core.exceptions import ValidationException
from meetd.core.temporal import ensure_utc, format_rfc3339, from_unix, parse_rfc3339, to_unix


class TestFormatRfc3339:
    def test_whole_seconds(self):
        assert format_rfc3339(datetime(2026, 2, 3, 10, 0, tzinfo=UTC)) == "2026-02-03T10:00:00+00:00"

    def test_z_suffix(self):
        assert format_rfc3339(datetime(2026, 2, 3, 10, 0, tzinfo=UTC), use_z=True) == "2026-02-03T10:00:00Z"

    def test_milliseconds(self):
        value = datetime(2026, 2, 3, 10, 0, 0, 250000, tzinfo=UTC)
        assert format_rfc3339(value) == "2026-02-03T10:00:00.250+00:00"

    def test_microseconds(self):
        value = datetime(2026, 2, 3, 10, 0, 0, 123456, tzinfo=UTC)
        assert format_rfc3339(value) == "2026-02-03T10:00:00.123456+00:00"

    def test_converts_offset_to_utc(self):
        value = datetime(2026, 2, 3, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_rfc3339(value) == "2026-02-03T10:00:00+00:00"

    def test_naive_rejected(self):
        with pytest.raises(ValidationException):
            format_rfc3339(datetime(2026, 2, 3, 10, 0))


class TestParseRfc3339:
    def test_z_and_offset_equivalent(self):
        assert parse_rfc3339("2026-02-03T10:00:00Z") == parse_rfc3339("2026-02-03T10:00:00+00:00")

    def test_nanoseconds_truncated(self):
        parsed = parse_rfc3339("2026-02-03T10:00:00.123456789Z")
        assert parsed.microsecond == 123456

    def test_invalid(self):
        with pytest.raises(ValidationException):
            parse_rfc3339("yesterday", field="expires_at")

    def test_naive_rejected(self):
        with pytest.raises(ValidationException):
            parse_rfc3339("2026-02-03T10:00:00")


class TestUnix:
    def test_round_trip(self):
        value = datetime(2026, 2, 3, 10, 0, tzinfo=UTC)
        assert from_unix(to_unix(value)) == value

    def test_ensure_utc_keeps_instant(self):
        value = datetime(2026, 2, 3, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(value) == value
        assert ensure_utc(value).tzinfo == UTC
