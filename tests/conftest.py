"""Global test fixtures for the Meetd test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg2
import pytest

from meetd.calendar.base import CalendarProvider, CreatedEvent
from meetd.core.config import CoreSettings, clear_config_cache
from meetd.core.exceptions import CalendarError
from meetd.models import BusyPeriod, User
from meetd.services.accounts import register_user, register_webhook
from meetd.services.proposals import ProposalService
from meetd.storage.memory import MemoryProposalStore
from meetd.webhook.dispatcher import WebhookDispatcher

# ============================================================================
# PostgreSQL Availability Detection
# ============================================================================


def _check_postgres_available() -> tuple[bool, str | None]:
    """Check if PostgreSQL is available for integration tests.

    Returns:
        Tuple of (is_available, error_message)
    """
    try:
        conn = psycopg2.connect(
            host=os.environ.get("MEETD_DB_HOST", "127.0.0.1"),
            port=int(os.environ.get("MEETD_DB_PORT", "5432")),
            dbname=os.environ.get("MEETD_DB_NAME", "meetd"),
            user=os.environ.get("MEETD_DB_USER", "meetd"),
            password=os.environ.get("MEETD_DB_PASSWORD", ""),
            connect_timeout=3,
        )
        conn.close()
        return True, None
    except psycopg2.OperationalError as e:
        return False, f"PostgreSQL connection failed: {e}"


# Check PostgreSQL availability once at module load
POSTGRES_AVAILABLE, POSTGRES_ERROR = _check_postgres_available()


def pytest_collection_modifyitems(config, items):
    """Skip tests marked requires_postgres when no database is reachable."""
    if POSTGRES_AVAILABLE:
        return

    skip_postgres = pytest.mark.skip(reason=f"PostgreSQL not available: {POSTGRES_ERROR}")
    for item in items:
        if "requires_postgres" in item.keywords:
            item.add_marker(skip_postgres)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all MEETD_ and GOOGLE_ environment variables."""
    env_prefixes = ("MEETD_", "GOOGLE_")
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def settings(monkeypatch, clean_env) -> CoreSettings:
    """Settings with a fixed public server URL."""
    monkeypatch.setenv("MEETD_SERVER_URL", "https://meetd.example.com")
    return CoreSettings()


# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """A fixed Monday morning in UTC."""
    return datetime(2026, 2, 2, 8, 0, tzinfo=UTC)


# ============================================================================
# Store and User Fixtures
# ============================================================================


@pytest.fixture
def store() -> MemoryProposalStore:
    return MemoryProposalStore()


@pytest.fixture
def alice(store) -> User:
    """Local sender with a webhook."""
    user = register_user(store, "alice@example.com")
    register_webhook(store, user, "https://alice.example.com/hook")
    return user


@pytest.fixture
def bob(store) -> User:
    """Local recipient with a webhook and a connected calendar."""
    user = register_user(store, "bob@example.com", google_refresh_token="bob-refresh")
    register_webhook(store, user, "https://bob.example.com/hook")
    return user


@pytest.fixture
def carol(store) -> User:
    """Local user without a webhook."""
    return register_user(store, "carol@example.com")


# ============================================================================
# Collaborator Fakes
# ============================================================================


class FakeCalendar(CalendarProvider):
    """In-memory CalendarProvider recording created events."""

    name = "fake"

    def __init__(self, busy: list[BusyPeriod] | None = None, fail: bool = False):
        self.busy = busy or []
        self.fail = fail
        self.created: list[dict] = []

    async def get_busy_periods(self, start, end):
        if self.fail:
            raise CalendarError("calendar unavailable", provider=self.name)
        return [p for p in self.busy if p.start < end and p.end > start]

    async def create_event(self, title, description, start, end, attendee=None):
        if self.fail:
            raise CalendarError("calendar unavailable", provider=self.name)
        self.created.append(
            {"title": title, "description": description, "start": start, "end": end, "attendee": attendee}
        )
        return CreatedEvent(id=f"evt_{len(self.created)}", html_link=f"https://calendar.example.com/evt_{len(self.created)}")


@pytest.fixture
def calendars() -> dict[str, FakeCalendar]:
    """Calendars by user email; users absent from the dict have none."""
    return {}


@pytest.fixture
def make_calendar(calendars):
    """Attach a FakeCalendar to a user's email and return it."""

    def attach(email: str, busy: list[BusyPeriod] | None = None, fail: bool = False) -> FakeCalendar:
        calendar = FakeCalendar(busy, fail)
        calendars[email] = calendar
        return calendar

    return attach


@pytest.fixture
def calendar_factory(calendars):
    def factory(user: User):
        return calendars.get(user.email)

    return factory


@pytest.fixture
def webhook_client() -> MagicMock:
    """WebhookClient stand-in whose deliver() records calls."""
    client = MagicMock()
    client.deliver = AsyncMock()
    return client


@pytest.fixture
def dispatcher(webhook_client) -> WebhookDispatcher:
    return WebhookDispatcher(client=webhook_client, max_concurrency=4)


@pytest.fixture
def service(store, dispatcher, calendar_factory, settings) -> ProposalService:
    return ProposalService(store, dispatcher=dispatcher, calendar_factory=calendar_factory, config=settings)


def delivered_events(webhook_client: MagicMock) -> list[tuple[str, str]]:
    """(url, event type) for every recorded webhook delivery."""
    return [(c.args[0], c.args[2].event.value) for c in webhook_client.deliver.await_args_list]


@pytest.fixture
def delivered():
    return delivered_events


# ============================================================================
# psycopg2 Connection Pool fixtures
# ============================================================================


@pytest.fixture
def mock_psycopg2_pool():
    """Mock the psycopg2 connection pool used by PostgresProposalStore."""
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_pool = MagicMock()

    mock_conn.cursor.return_value = mock_cursor
    mock_cursor.__enter__ = MagicMock(return_value=mock_cursor)
    mock_cursor.__exit__ = MagicMock(return_value=False)

    mock_pool.getconn.return_value = mock_conn
    mock_pool.putconn = MagicMock()
    mock_pool.closeall = MagicMock()

    with patch("meetd.storage.postgres.psycopg2_pool.ThreadedConnectionPool") as mock_pool_class:
        mock_pool_class.return_value = mock_pool
        yield {
            "pool_class": mock_pool_class,
            "pool": mock_pool,
            "connection": mock_conn,
            "cursor": mock_cursor,
        }
