# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Mutual availability between a local user and a counterpart.

The requester's calendar must be readable; a failure there is an error.
The counterpart's calendar is best effort: an unknown counterpart, one
without a connected calendar, or one whose calendar fails, contributes no
busy time.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..core.config import get_config
from ..core.exceptions import CalendarError, ValidationException
from ..core.temporal import utcnow
from ..models import AvailableSlot, BusyPeriod, TimeWindow, User
from ..scheduling.availability import intersect_availability, rank_slots
from ..storage.base import ProposalStore
from .proposals import CalendarFactory

logger = logging.getLogger(__name__)


async def _requester_busy(user: User, window: TimeWindow, calendar_factory: CalendarFactory | None) -> list[BusyPeriod]:
    calendar = calendar_factory(user) if calendar_factory else None
    if calendar is None:
        return []
    return await calendar.get_busy_periods(window.start, window.end)


async def _counterpart_busy(
    email: str,
    window: TimeWindow,
    store: ProposalStore,
    calendar_factory: CalendarFactory | None,
) -> list[BusyPeriod]:
    counterpart = store.get_user_by_email(email)
    if counterpart is None or calendar_factory is None:
        return []
    calendar = calendar_factory(counterpart)
    if calendar is None:
        return []
    try:
        return await calendar.get_busy_periods(window.start, window.end)
    except CalendarError as e:
        logger.warning(f"Ignoring calendar of {email}: {e}")
        return []


async def query_availability(
    requester: User,
    with_email: str,
    window: TimeWindow,
    duration_minutes: int,
    store: ProposalStore,
    calendar_factory: CalendarFactory | None = None,
    now: datetime | None = None,
    max_slots: int | None = None,
) -> list[AvailableSlot]:
    """Ranked slots where both ``requester`` and ``with_email`` are free.

    Raises:
        ValidationException: If the window is empty or the duration is not
            positive.
        CalendarError: If the requester's own calendar cannot be read.
    """
    if max_slots is None:
        max_slots = get_config().max_slots
    if window.end <= window.start:
        raise ValidationException("Window end must be after window start", field="window")

    requester_busy = await _requester_busy(requester, window, calendar_factory)
    counterpart_busy = await _counterpart_busy(with_email, window, store, calendar_factory)

    slots = intersect_availability(requester_busy, counterpart_busy, window.start, window.end, duration_minutes)
    ranked = rank_slots(slots, now or utcnow(), limit=max_slots)
    logger.debug(f"Availability {requester.email} <-> {with_email}: {len(slots)} candidates, {len(ranked)} returned")
    return ranked
