"""Availability engine: free-slot sweep and preference scoring.

Slots are generated by sweeping a window left to right over busy periods
sorted by start time. Every gap yields candidate slots starting at the gap
start and then every 30 minutes, whatever the meeting duration, so
candidates can overlap. This gives callers several start times per gap.

Overlapping or nested busy periods need no merge pass: the cursor only
ever moves forward to ``max(cursor, busy.end)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta

from ..core.exceptions import ValidationException
from ..models import AvailableSlot, BusyPeriod, TimeSlot

SLOT_STEP = timedelta(minutes=30)
DEFAULT_MAX_SLOTS = 20

# Scoring weights
BASE_SCORE = 0.5
CORE_HOURS = (9, 17)
EXTENDED_HOURS = (8, 18)
CORE_HOURS_BONUS = 0.2
EXTENDED_HOURS_BONUS = 0.1
WEEKDAY_BONUS = 0.1
LEAD_TIME_HOURS = (24, 72)
LEAD_TIME_BONUS = 0.1
MIN_LEAD_HOURS = 4
MIN_LEAD_BONUS = 0.05
ROUND_START_BONUS = 0.1


def _emit_gap(
    gap_start: datetime,
    gap_end: datetime,
    duration: timedelta,
    out: list[TimeSlot],
) -> None:
    slot_start = gap_start
    while slot_start + duration <= gap_end:
        out.append(TimeSlot(slot_start, slot_start + duration))
        slot_start += SLOT_STEP


def find_available_slots(
    busy_periods: Iterable[BusyPeriod],
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int,
) -> list[TimeSlot]:
    """Find every candidate slot of ``duration_minutes`` inside the window.

    Args:
        busy_periods: Busy intervals, in any order, possibly overlapping.
        window_start: Start of the search window (inclusive).
        window_end: End of the search window (exclusive).
        duration_minutes: Meeting length.

    Returns:
        Slots in chronological order of their gaps; none overlaps a busy
        period and none extends past ``window_end``.
    """
    if duration_minutes <= 0:
        raise ValidationException(
            "duration_minutes must be positive", field="duration_minutes", value=duration_minutes
        )

    duration = timedelta(minutes=duration_minutes)
    available: list[TimeSlot] = []

    # sorted() is stable: equal starts keep their input order
    ordered = sorted(busy_periods, key=lambda p: p.start)

    cursor = window_start
    for busy in ordered:
        if busy.start > cursor:
            _emit_gap(cursor, min(busy.start, window_end), duration, available)
        if busy.end > cursor:
            cursor = busy.end

    _emit_gap(cursor, window_end, duration, available)
    return available


def intersect_availability(
    busy_a: Sequence[BusyPeriod],
    busy_b: Sequence[BusyPeriod],
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int,
) -> list[TimeSlot]:
    """Slots where neither party is busy.

    Unions both busy lists and runs the same sweep, which is exact for
    calendars whose busy lists are ordinary interval sets.
    """
    combined = list(busy_a) + list(busy_b)
    return find_available_slots(combined, window_start, window_end, duration_minutes)


def score_slot(slot: TimeSlot, now: datetime) -> float:
    """Score a slot in [0, 1] with a fixed heuristic.

    Starting from 0.5:
    - +0.2 if the start hour is in [9, 17), else +0.1 if in [8, 18)
    - +0.1 on Monday to Friday
    - +0.1 if the start is 24 to 72 whole hours away, else +0.05 if at least 4
    - +0.1 if the start minute is :00 or :30

    Clock fields are read in UTC. The result is capped at 1.0.
    """
    start = slot.start.astimezone(UTC)
    score = BASE_SCORE

    hour = start.hour
    if CORE_HOURS[0] <= hour < CORE_HOURS[1]:
        score += CORE_HOURS_BONUS
    elif EXTENDED_HOURS[0] <= hour < EXTENDED_HOURS[1]:
        score += EXTENDED_HOURS_BONUS

    if start.weekday() < 5:
        score += WEEKDAY_BONUS

    # Whole hours, truncated toward zero
    hours_until = int((slot.start - now) / timedelta(hours=1))
    if LEAD_TIME_HOURS[0] <= hours_until <= LEAD_TIME_HOURS[1]:
        score += LEAD_TIME_BONUS
    elif hours_until >= MIN_LEAD_HOURS:
        score += MIN_LEAD_BONUS

    if start.minute in (0, 30):
        score += ROUND_START_BONUS

    return min(score, 1.0)


def rank_slots(
    slots: Iterable[TimeSlot],
    now: datetime,
    limit: int = DEFAULT_MAX_SLOTS,
) -> list[AvailableSlot]:
    """Score slots, order best first and keep the top ``limit``.

    Ties keep their chronological input order.
    """
    scored = [AvailableSlot(start=s.start, end=s.end, score=score_slot(s, now)) for s in slots]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:limit]
