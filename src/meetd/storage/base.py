"""Persistence collaborator interface.

The proposal lifecycle only talks to storage through this interface. Two
operations carry the concurrency guarantees the lifecycle relies on:

- ``mark_nonce_used`` is a single conditional insert. A duplicate raises
  NonceAlreadyUsed, never a generic storage error.
- ``update_proposal_status`` with a ``from_status`` guard is a conditional
  update. It returns False when the proposal was not in ``from_status``,
  so two concurrent accepts cannot both win.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ..models import Proposal, ProposalStatus, User


class ProposalStore(ABC):
    """Abstract interface for users, proposals and used nonces."""

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_user(self, user: User) -> None:
        """Store a new user.

        Raises:
            ConflictError: If the id or email is already registered.
        """
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    def update_user_webhook(
        self,
        user_id: str,
        webhook_url: str | None,
        webhook_secret: str | None,
    ) -> None:
        """Set or clear a user's webhook registration."""
        ...

    # -------------------------------------------------------------------------
    # Proposals
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_proposal(self, proposal: Proposal) -> None:
        """Store a new proposal.

        Raises:
            ConflictError: If the id already exists.
        """
        ...

    @abstractmethod
    def get_proposal(self, proposal_id: str) -> Proposal | None: ...

    @abstractmethod
    def update_proposal_status(
        self,
        proposal_id: str,
        from_status: ProposalStatus | None,
        to_status: ProposalStatus,
    ) -> bool:
        """Transition a proposal's status.

        Args:
            proposal_id: The proposal to update.
            from_status: Required current status, or None for an
                unconditional update.
            to_status: New status.

        Returns:
            True if a row was updated.
        """
        ...

    @abstractmethod
    def get_proposals_for(self, email: str, status: ProposalStatus | None = None) -> list[Proposal]:
        """Proposals addressed to ``email``, earliest slot first."""
        ...

    @abstractmethod
    def get_proposals_from(self, user_id: str) -> list[Proposal]:
        """Proposals sent by ``user_id``, newest first."""
        ...

    @abstractmethod
    def expire_pending_older_than(self, now: datetime) -> int:
        """Move every pending proposal with ``expires_at < now`` to expired.

        Returns:
            Number of proposals expired.
        """
        ...

    # -------------------------------------------------------------------------
    # Nonces
    # -------------------------------------------------------------------------

    @abstractmethod
    def is_nonce_used(self, nonce: str) -> bool: ...

    @abstractmethod
    def mark_nonce_used(self, nonce: str, used_at: datetime, expires_at: datetime | None = None) -> None:
        """Record a nonce with a single conditional insert.

        ``expires_at`` is the expiry of the proposal carrying the nonce.

        Raises:
            NonceAlreadyUsed: If the nonce is already recorded.
        """
        ...

    @abstractmethod
    def purge_nonces_older_than(self, cutoff: datetime, now: datetime | None = None) -> int:
        """Delete nonces used before ``cutoff`` whose proposal expired before ``now``.

        Nonces recorded without an expiry only need to be older than ``cutoff``.

        Returns:
            Number of nonces removed.
        """
        ...
