# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Google Calendar provider over the REST API.

Access tokens are short-lived. ``TokenCache`` holds the long-lived refresh
token plus the current access token, and refreshes five minutes before the
access token expires.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import httpx

from ..core.config import CoreSettings, get_config
from ..core.exceptions import CalendarError, ConfigException, ValidationException
from ..core.temporal import format_rfc3339, parse_rfc3339, utcnow
from ..models import BusyPeriod, User
from .base import CalendarProvider, CreatedEvent

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API = "https://www.googleapis.com/calendar/v3"
PRIMARY_CALENDAR = "primary"
REFRESH_MARGIN = timedelta(minutes=5)
DEFAULT_TIMEOUT = 30.0


def _json_object(resp: httpx.Response, what: str) -> dict[str, Any]:
    """Decode a 2xx response body that must be a JSON object.

    Raises:
        CalendarError: If the body is not JSON or not an object.
    """
    try:
        data = resp.json()
    except ValueError as e:
        raise CalendarError(f"{what} returned invalid JSON: {e}", provider="google") from e
    if not isinstance(data, dict):
        raise CalendarError(f"{what} returned {type(data).__name__}, expected an object", provider="google")
    return data


@dataclass
class TokenCache:
    """OAuth token state for one Google account."""

    client_id: str
    client_secret: str
    refresh_token: str
    access_token: str | None = None
    expires_at: datetime | None = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def needs_refresh(self, now: datetime | None = None) -> bool:
        if self.access_token is None or self.expires_at is None:
            return True
        return (now or utcnow()) >= self.expires_at - REFRESH_MARGIN

    async def get_access_token(self, client: httpx.AsyncClient) -> str:
        """Return a valid access token, refreshing it if needed."""
        async with self._lock:
            if self.needs_refresh():
                await self._refresh(client)
            if self.access_token is None:
                raise CalendarError("Token refresh returned no access token", provider="google")
            return self.access_token

    async def _refresh(self, client: httpx.AsyncClient) -> None:
        try:
            resp = await client.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as e:
            raise CalendarError(f"Token refresh failed: {e}", provider="google") from e

        if resp.status_code != 200:
            raise CalendarError(
                f"Token refresh returned HTTP {resp.status_code}: {resp.text[:500]}",
                provider="google",
            )

        data = _json_object(resp, "Token refresh")
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise CalendarError("Token refresh returned no access token", provider="google")
        try:
            expires_in = int(data.get("expires_in", 3600))
        except (TypeError, ValueError) as e:
            raise CalendarError(f"Token refresh returned bad expires_in: {e}", provider="google") from e
        self.access_token = access_token
        self.expires_at = utcnow() + timedelta(seconds=expires_in)
        logger.debug(f"Refreshed Google access token, expires at {self.expires_at.isoformat()}")


class GoogleCalendar(CalendarProvider):
    """CalendarProvider for a user's primary Google calendar.

    Args:
        client: Shared async HTTP client. The caller owns its lifetime.
        token_cache: Token state for the account.
    """

    name = "google"

    def __init__(self, client: httpx.AsyncClient, token_cache: TokenCache) -> None:
        self._client = client
        self._tokens = token_cache

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        token = await self._tokens.get_access_token(self._client)
        try:
            resp = await self._client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=DEFAULT_TIMEOUT,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise CalendarError(f"Calendar request failed: {e}", provider=self.name) from e

        if resp.status_code < 200 or resp.status_code >= 300:
            raise CalendarError(
                f"Calendar API returned HTTP {resp.status_code}: {resp.text[:500]}",
                provider=self.name,
            )
        return _json_object(resp, "Calendar API")

    async def get_busy_periods(self, start: datetime, end: datetime) -> list[BusyPeriod]:
        data = await self._request(
            "POST",
            f"{CALENDAR_API}/freeBusy",
            json={
                "timeMin": format_rfc3339(start, use_z=True),
                "timeMax": format_rfc3339(end, use_z=True),
                "items": [{"id": PRIMARY_CALENDAR}],
            },
        )

        periods: list[BusyPeriod] = []
        try:
            for calendar in data.get("calendars", {}).values():
                for busy in calendar.get("busy", []):
                    periods.append(
                        BusyPeriod(
                            start=parse_rfc3339(busy["start"], field="busy.start"),
                            end=parse_rfc3339(busy["end"], field="busy.end"),
                        )
                    )
        except (KeyError, TypeError, AttributeError, ValueError, ValidationException) as e:
            raise CalendarError(f"Malformed free/busy response: {e}", provider=self.name) from e
        return periods

    async def create_event(
        self,
        title: str,
        description: str | None,
        start: datetime,
        end: datetime,
        attendee: str | None = None,
    ) -> CreatedEvent:
        body: dict[str, Any] = {
            "summary": title,
            "start": {"dateTime": format_rfc3339(start, use_z=True)},
            "end": {"dateTime": format_rfc3339(end, use_z=True)},
        }
        if description:
            body["description"] = description
        if attendee:
            body["attendees"] = [{"email": attendee}]

        data = await self._request(
            "POST",
            f"{CALENDAR_API}/calendars/{PRIMARY_CALENDAR}/events",
            params={"sendNotifications": "true"},
            json=body,
        )
        event_id = data.get("id")
        if not isinstance(event_id, str) or not event_id:
            raise CalendarError("Event response has no id", provider=self.name)
        return CreatedEvent(id=event_id, html_link=data.get("htmlLink"))


class GoogleCalendarFactory:
    """Builds a GoogleCalendar per user over one shared HTTP client.

    Token caches are kept per user id so access tokens survive between
    calls. Users without a refresh token get no calendar.

    Raises:
        ConfigException: If the OAuth client id or secret is missing.
    """

    def __init__(self, client_id: str, client_secret: str, client: httpx.AsyncClient | None = None) -> None:
        missing = [
            name
            for name, value in (("GOOGLE_CLIENT_ID", client_id), ("GOOGLE_CLIENT_SECRET", client_secret))
            if not value
        ]
        if missing:
            raise ConfigException("Google OAuth client is not configured", missing_vars=missing)
        self._client_id = client_id
        self._client_secret = client_secret
        self._client = client or httpx.AsyncClient()
        self._caches: dict[str, TokenCache] = {}

    @classmethod
    def from_config(
        cls, config: CoreSettings | None = None, client: httpx.AsyncClient | None = None
    ) -> GoogleCalendarFactory:
        config = config or get_config()
        return cls(config.google_client_id, config.google_client_secret, client=client)

    def __call__(self, user: User) -> GoogleCalendar | None:
        if not user.google_refresh_token:
            return None
        cache = self._caches.get(user.id)
        if cache is None or cache.refresh_token != user.google_refresh_token:
            cache = TokenCache(
                client_id=self._client_id,
                client_secret=self._client_secret,
                refresh_token=user.google_refresh_token,
            )
            self._caches[user.id] = cache
        return GoogleCalendar(self._client, cache)

    async def aclose(self) -> None:
        await self._client.aclose()
