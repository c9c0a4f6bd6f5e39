# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""PostgreSQL ProposalStore.

Config via MEETD_DB_* environment variables (see meetd.core.config).

Nonce recording is ``INSERT ... ON CONFLICT DO NOTHING``; a zero row count
means another delivery recorded the nonce first. Guarded status updates are
``UPDATE ... WHERE status = %s`` so concurrent accepts race inside the
database rather than in Python.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2 import pool as psycopg2_pool
from psycopg2.extras import RealDictCursor

from ..core.config import CoreSettings, get_config
from ..core.exceptions import ConflictError, DatabaseException, NonceAlreadyUsed
from ..core.temporal import to_unix, utcnow
from ..models import Proposal, ProposalStatus, User
from .base import ProposalStore

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_PROPOSAL_COLUMNS = (
    "id, from_user_id, to_email, slot_start, duration_minutes, title, description, "
    "nonce, expires_at, signature, status, created_at"
)
_USER_COLUMNS = (
    "id, email, public_key, private_key, google_refresh_token, visibility, "
    "webhook_url, webhook_secret, created_at"
)


def _get_conn_with_timeout(pool: psycopg2_pool.ThreadedConnectionPool, timeout: int) -> Any:
    """Get a connection from ``pool``, waiting at most ``timeout`` seconds.

    ``getconn`` runs in a helper thread so a stalled connect cannot block
    the caller past the timeout.

    Raises:
        DatabaseException: If the timeout expires or the pool fails.
    """
    result_queue: queue.Queue = queue.Queue()

    def _get_conn():
        try:
            result_queue.put(("success", pool.getconn()))
        except Exception as e:
            result_queue.put(("error", e))

    thread = threading.Thread(target=_get_conn, daemon=True)
    thread.start()

    try:
        result_type, result_value = result_queue.get(timeout=timeout)
    except queue.Empty:
        raise DatabaseException(f"Connection pool timeout after {timeout} seconds") from None
    if result_type == "error":
        if isinstance(result_value, psycopg2.Error):
            raise DatabaseException(f"Failed to get connection: {result_value}") from result_value
        raise result_value
    return result_value


class PostgresProposalStore(ProposalStore):
    """ProposalStore backed by a psycopg2 threaded connection pool.

    The pool is created lazily on first use.
    """

    def __init__(self, config: CoreSettings | None = None) -> None:
        self._config = config or get_config()
        self._pool: psycopg2_pool.ThreadedConnectionPool | None = None
        self._pool_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    def _get_pool(self) -> psycopg2_pool.ThreadedConnectionPool:
        if self._pool is None:
            with self._pool_lock:
                if self._pool is None:
                    try:
                        self._pool = psycopg2_pool.ThreadedConnectionPool(
                            minconn=self._config.db_pool_min,
                            maxconn=self._config.db_pool_max,
                            **self._config.connection_params,
                        )
                    except psycopg2.Error as e:
                        raise DatabaseException(f"Failed to connect to database: {e}") from e
        return self._pool

    @contextmanager
    def get_cursor(self) -> Generator[Any, None, None]:
        """Get a cursor with commit on success and rollback on error.

        Waits up to ``db_pool_timeout`` seconds for a pooled connection.
        psycopg2 errors are re-raised as DatabaseException.
        """
        pool = self._get_pool()
        conn = _get_conn_with_timeout(pool, self._config.db_pool_timeout)
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            raise DatabaseException(f"Database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def init_schema(self, schema_path: str | Path | None = None) -> None:
        """Create tables from schema.sql if they do not exist."""
        path = Path(schema_path) if schema_path else SCHEMA_PATH
        with self.get_cursor() as cur:
            cur.execute(path.read_text())
        logger.info(f"Initialized schema from {path}")

    def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def create_user(self, user: User) -> None:
        try:
            with self.get_cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO users ({_USER_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        user.id,
                        user.email,
                        user.public_key,
                        user.private_key,
                        user.google_refresh_token,
                        user.visibility.value,
                        user.webhook_url,
                        user.webhook_secret,
                        user.created_at or to_unix(utcnow()),
                    ),
                )
        except DatabaseException as e:
            if isinstance(e.__cause__, pg_errors.UniqueViolation):
                raise ConflictError(f"User already exists: {user.email}", existing_id=user.id) from e
            raise

    def get_user(self, user_id: str) -> User | None:
        with self.get_cursor() as cur:
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return User.from_row(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        with self.get_cursor() as cur:
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s", (email,))
            row = cur.fetchone()
        return User.from_row(row) if row else None

    def update_user_webhook(
        self,
        user_id: str,
        webhook_url: str | None,
        webhook_secret: str | None,
    ) -> None:
        with self.get_cursor() as cur:
            cur.execute(
                "UPDATE users SET webhook_url = %s, webhook_secret = %s WHERE id = %s",
                (webhook_url, webhook_secret, user_id),
            )

    # -------------------------------------------------------------------------
    # Proposals
    # -------------------------------------------------------------------------

    def create_proposal(self, proposal: Proposal) -> None:
        try:
            with self.get_cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO proposals ({_PROPOSAL_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        proposal.id,
                        proposal.from_user_id,
                        proposal.to_email,
                        to_unix(proposal.slot_start),
                        proposal.duration_minutes,
                        proposal.title,
                        proposal.description,
                        proposal.nonce,
                        to_unix(proposal.expires_at),
                        proposal.signature,
                        proposal.status.value,
                        proposal.created_at or to_unix(utcnow()),
                    ),
                )
        except DatabaseException as e:
            if isinstance(e.__cause__, pg_errors.UniqueViolation):
                raise ConflictError(f"Proposal already exists: {proposal.id}", existing_id=proposal.id) from e
            raise

    def get_proposal(self, proposal_id: str) -> Proposal | None:
        with self.get_cursor() as cur:
            cur.execute(f"SELECT {_PROPOSAL_COLUMNS} FROM proposals WHERE id = %s", (proposal_id,))
            row = cur.fetchone()
        return Proposal.from_row(row) if row else None

    def update_proposal_status(
        self,
        proposal_id: str,
        from_status: ProposalStatus | None,
        to_status: ProposalStatus,
    ) -> bool:
        with self.get_cursor() as cur:
            if from_status is None:
                cur.execute(
                    "UPDATE proposals SET status = %s WHERE id = %s",
                    (to_status.value, proposal_id),
                )
            else:
                cur.execute(
                    "UPDATE proposals SET status = %s WHERE id = %s AND status = %s",
                    (to_status.value, proposal_id, from_status.value),
                )
            return cur.rowcount > 0

    def get_proposals_for(self, email: str, status: ProposalStatus | None = None) -> list[Proposal]:
        with self.get_cursor() as cur:
            if status is None:
                cur.execute(
                    f"SELECT {_PROPOSAL_COLUMNS} FROM proposals WHERE to_email = %s ORDER BY slot_start ASC",
                    (email,),
                )
            else:
                cur.execute(
                    f"""
                    SELECT {_PROPOSAL_COLUMNS} FROM proposals
                    WHERE to_email = %s AND status = %s
                    ORDER BY slot_start ASC
                    """,
                    (email, status.value),
                )
            rows = cur.fetchall()
        return [Proposal.from_row(row) for row in rows]

    def get_proposals_from(self, user_id: str) -> list[Proposal]:
        with self.get_cursor() as cur:
            cur.execute(
                f"SELECT {_PROPOSAL_COLUMNS} FROM proposals WHERE from_user_id = %s ORDER BY created_at DESC",
                (user_id,),
            )
            rows = cur.fetchall()
        return [Proposal.from_row(row) for row in rows]

    def expire_pending_older_than(self, now: datetime) -> int:
        with self.get_cursor() as cur:
            cur.execute(
                "UPDATE proposals SET status = %s WHERE status = %s AND expires_at < %s",
                (ProposalStatus.EXPIRED.value, ProposalStatus.PENDING.value, to_unix(now)),
            )
            return cur.rowcount

    # -------------------------------------------------------------------------
    # Nonces
    # -------------------------------------------------------------------------

    def is_nonce_used(self, nonce: str) -> bool:
        with self.get_cursor() as cur:
            cur.execute("SELECT 1 FROM used_nonces WHERE nonce = %s", (nonce,))
            return cur.fetchone() is not None

    def mark_nonce_used(self, nonce: str, used_at: datetime, expires_at: datetime | None = None) -> None:
        with self.get_cursor() as cur:
            cur.execute(
                """
                INSERT INTO used_nonces (nonce, used_at, expires_at) VALUES (%s, %s, %s)
                ON CONFLICT (nonce) DO NOTHING
                """,
                (nonce, to_unix(used_at), to_unix(expires_at) if expires_at else None),
            )
            inserted = cur.rowcount
        if inserted == 0:
            raise NonceAlreadyUsed(nonce)

    def purge_nonces_older_than(self, cutoff: datetime, now: datetime | None = None) -> int:
        with self.get_cursor() as cur:
            cur.execute(
                """
                DELETE FROM used_nonces
                WHERE used_at < %s AND (expires_at IS NULL OR expires_at < %s)
                """,
                (to_unix(cutoff), to_unix(now or utcnow())),
            )
            return cur.rowcount
