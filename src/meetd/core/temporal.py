# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Timestamp helpers shared by the wire codec, storage and scheduling.

All datetimes inside meetd are timezone-aware UTC. Naive values coming off
the wire are rejected instead of being guessed at.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

from .exceptions import ValidationException

# Fractional seconds longer than microseconds (e.g. nanoseconds) are truncated
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime, field: str | None = None) -> datetime:
    """Normalize an aware datetime to UTC; reject naive ones."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValidationException("Timestamp must carry a timezone", field=field, value=value)
    return value.astimezone(UTC)


def format_rfc3339(value: datetime, use_z: bool = False) -> str:
    """Render an RFC 3339 timestamp in UTC.

    Fractional seconds are omitted when zero, written with 3 digits for
    whole milliseconds and 6 digits otherwise. The offset is ``+00:00``
    unless ``use_z`` is set.

    >>> format_rfc3339(datetime(2026, 2, 3, 10, 0, tzinfo=UTC))
    '2026-02-03T10:00:00+00:00'
    """
    value = ensure_utc(value)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    micro = value.microsecond
    if micro:
        if micro % 1000 == 0:
            text += f".{micro // 1000:03d}"
        else:
            text += f".{micro:06d}"
    return text + ("Z" if use_z else "+00:00")


def parse_rfc3339(value: str, field: str | None = None) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if not isinstance(value, str):
        raise ValidationException("Timestamp must be a string", field=field, value=value)
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationException(f"Invalid timestamp: {value}", field=field, value=value) from e
    return ensure_utc(parsed, field=field)


def from_unix(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, UTC)


def to_unix(value: datetime) -> int:
    return int(ensure_utc(value).timestamp())
