"""Tests for meetd.services.availability.query_availability."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from meetd.calendar.google import GoogleCalendar, TokenCache
from meetd.core.exceptions import CalendarError, ValidationException
from meetd.models import BusyPeriod, TimeWindow
from meetd.services.availability import query_availability

# Tuesday morning
WINDOW = TimeWindow(datetime(2026, 2, 3, 9, 0, tzinfo=UTC), datetime(2026, 2, 3, 12, 0, tzinfo=UTC))


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 2, 3, hour, minute, tzinfo=UTC)


def starts(slots) -> list[datetime]:
    return sorted(s.start for s in slots)


def google_calendar_returning(payload: dict) -> GoogleCalendar:
    """GoogleCalendar whose API requests all answer 200 with ``payload``."""
    token_response = MagicMock(status_code=200)
    token_response.json.return_value = {"access_token": "at", "expires_in": 3600}
    api_response = MagicMock(status_code=200)
    api_response.json.return_value = payload

    client = MagicMock()
    client.post = AsyncMock(return_value=token_response)
    client.request = AsyncMock(return_value=api_response)
    return GoogleCalendar(client, TokenCache(client_id="cid", client_secret="csecret", refresh_token="rt"))


class TestQueryAvailability:
    @pytest.mark.asyncio
    async def test_counterpart_busy_excluded(self, store, calendar_factory, make_calendar, alice, bob, now):
        make_calendar(alice.email)
        make_calendar(bob.email, busy=[BusyPeriod(at(10), at(11))])

        slots = await query_availability(alice, bob.email, WINDOW, 60, store, calendar_factory, now=now)

        assert starts(slots) == [at(9), at(11)]

    @pytest.mark.asyncio
    async def test_both_calendars_combined(self, store, calendar_factory, make_calendar, alice, bob, now):
        make_calendar(alice.email, busy=[BusyPeriod(at(9), at(9, 30))])
        make_calendar(bob.email, busy=[BusyPeriod(at(11), at(12))])

        slots = await query_availability(alice, bob.email, WINDOW, 60, store, calendar_factory, now=now)

        assert starts(slots) == [at(9, 30), at(10)]

    @pytest.mark.asyncio
    async def test_slots_ranked_by_score(self, store, calendar_factory, make_calendar, alice, bob, now):
        make_calendar(alice.email)

        slots = await query_availability(alice, bob.email, WINDOW, 30, store, calendar_factory, now=now)

        scores = [s.score for s in slots]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    @pytest.mark.asyncio
    async def test_unknown_counterpart_contributes_nothing(self, store, calendar_factory, make_calendar, alice, now):
        make_calendar(alice.email, busy=[BusyPeriod(at(9), at(11))])

        slots = await query_availability(
            alice, "dave@remote.example.org", WINDOW, 60, store, calendar_factory, now=now
        )

        assert starts(slots) == [at(11)]

    @pytest.mark.asyncio
    async def test_counterpart_failure_ignored(self, store, calendar_factory, make_calendar, alice, bob, now, caplog):
        make_calendar(alice.email)
        make_calendar(bob.email, fail=True)

        with caplog.at_level(logging.WARNING, logger="meetd.services.availability"):
            slots = await query_availability(alice, bob.email, WINDOW, 60, store, calendar_factory, now=now)

        assert starts(slots) == [at(9), at(9, 30), at(10), at(10, 30), at(11)]
        assert any(bob.email in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_requester_failure_propagates(self, store, calendar_factory, make_calendar, alice, bob, now):
        make_calendar(alice.email, fail=True)
        make_calendar(bob.email)

        with pytest.raises(CalendarError):
            await query_availability(alice, bob.email, WINDOW, 60, store, calendar_factory, now=now)

    @pytest.mark.asyncio
    async def test_no_calendars_whole_window_free(self, store, alice, bob, now):
        slots = await query_availability(alice, bob.email, WINDOW, 60, store, now=now)

        assert len(slots) == 5

    @pytest.mark.asyncio
    async def test_max_slots(self, store, alice, bob, now):
        slots = await query_availability(alice, bob.email, WINDOW, 30, store, now=now, max_slots=2)

        assert len(slots) == 2

    @pytest.mark.asyncio
    async def test_empty_window_rejected(self, store, alice, bob, now):
        window = TimeWindow(at(12), at(12))

        with pytest.raises(ValidationException):
            await query_availability(alice, bob.email, window, 30, store, now=now)

    @pytest.mark.asyncio
    async def test_fully_busy(self, store, calendar_factory, make_calendar, alice, bob, now):
        make_calendar(alice.email, busy=[BusyPeriod(at(8), at(13))])

        assert await query_availability(alice, bob.email, WINDOW, 30, store, calendar_factory, now=now) == []

    @pytest.mark.asyncio
    async def test_max_slots_from_settings(self, store, alice, bob, now, monkeypatch, clean_env):
        monkeypatch.setenv("MEETD_MAX_SLOTS", "3")

        slots = await query_availability(alice, bob.email, WINDOW, 30, store, now=now)

        assert len(slots) == 3

    @pytest.mark.asyncio
    async def test_counterpart_malformed_free_busy_ignored(self, store, calendars, calendar_factory, alice, bob, now):
        calendars[bob.email] = google_calendar_returning({"calendars": {"primary": {"busy": [{"end": "x"}]}}})

        slots = await query_availability(alice, bob.email, WINDOW, 60, store, calendar_factory, now=now)

        assert starts(slots) == [at(9), at(9, 30), at(10), at(10, 30), at(11)]

    @pytest.mark.asyncio
    async def test_requester_malformed_free_busy_is_calendar_error(
        self, store, calendars, calendar_factory, alice, bob, now
    ):
        calendars[alice.email] = google_calendar_returning({"calendars": {"primary": {"busy": ["10:00"]}}})

        with pytest.raises(CalendarError):
            await query_availability(alice, bob.email, WINDOW, 60, store, calendar_factory, now=now)
