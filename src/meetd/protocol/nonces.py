"""Nonce ledger for proposal replay protection.

Every signed proposal carries a single-use nonce. The recipient records it
when the proposal is received; a second proposal with the same nonce is a
replay and is rejected.

The ledger is policy only. Storage belongs to the persistence collaborator,
which must make ``mark_nonce_used`` a single conditional insert so that two
concurrent deliveries of the same nonce cannot both succeed.

Usage:
    ledger = NonceLedger(store)

    # On receive (after signature and expiry checks pass)
    if ledger.is_used(proposal.nonce):
        reject("Replayed proposal")
    ledger.mark_used(proposal.nonce, expires_at=proposal.expires_at)  # NonceAlreadyUsed on a race

    # On send
    proposal.nonce = generate_nonce()
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Protocol

from ..core.config import MIN_NONCE_RETENTION_HOURS
from ..core.temporal import utcnow

logger = logging.getLogger(__name__)

DEFAULT_NONCE_RETENTION = timedelta(hours=MIN_NONCE_RETENTION_HOURS)


def generate_nonce() -> str:
    """Generate a random nonce for a new proposal (UUID4 string)."""
    return str(uuid.uuid4())


class NonceStore(Protocol):
    """Storage operations the ledger needs from the persistence collaborator."""

    def is_nonce_used(self, nonce: str) -> bool: ...

    def mark_nonce_used(self, nonce: str, used_at: datetime, expires_at: datetime | None = None) -> None: ...

    def purge_nonces_older_than(self, cutoff: datetime, now: datetime | None = None) -> int: ...


class NonceLedger:
    """Replay policy over a NonceStore.

    A nonce is kept for at least ``retention`` after it was used and, when
    the proposal it guards carries an expiry, until that expiry has passed.
    An envelope that is still inside its validity window therefore always
    finds its nonce recorded.

    Args:
        store: Persistence collaborator holding the used-nonce set.
        retention: How long a used nonce is kept. Anything shorter than
            24 hours would reopen a replay window and is refused.
    """

    def __init__(self, store: NonceStore, retention: timedelta = DEFAULT_NONCE_RETENTION) -> None:
        if retention < DEFAULT_NONCE_RETENTION:
            raise ValueError(f"Nonce retention must be at least {MIN_NONCE_RETENTION_HOURS} hours")
        self._store = store
        self._retention = retention

    @property
    def retention(self) -> timedelta:
        return self._retention

    def is_used(self, nonce: str) -> bool:
        """Check whether ``nonce`` has already been recorded."""
        return self._store.is_nonce_used(nonce)

    def mark_used(self, nonce: str, now: datetime | None = None, expires_at: datetime | None = None) -> None:
        """Record ``nonce`` as used.

        Args:
            nonce: The nonce to record.
            now: Time of use, defaults to the current time.
            expires_at: Expiry of the proposal carrying the nonce. The nonce
                is not purged before this instant.

        Raises:
            NonceAlreadyUsed: If the nonce was already recorded, including
                when a concurrent caller recorded it first.
        """
        self._store.mark_nonce_used(nonce, now or utcnow(), expires_at)

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop nonces past both the retention window and their proposal's expiry.

        Returns:
            Number of nonces removed.
        """
        now = now or utcnow()
        cutoff = now - self._retention
        removed = self._store.purge_nonces_older_than(cutoff, now)
        if removed > 0:
            logger.debug(f"Nonce purge: removed {removed} nonces used before {cutoff.isoformat()}")
        return removed
