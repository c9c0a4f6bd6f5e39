"""In-memory ProposalStore.

Suitable for tests, development and single-process deployments. Everything
is lost on restart. A single lock makes each conditional insert and guarded
status update atomic across threads.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from ..core.exceptions import ConflictError, NonceAlreadyUsed
from ..core.temporal import utcnow
from ..models import Proposal, ProposalStatus, User
from .base import ProposalStore


class MemoryProposalStore(ProposalStore):
    """Thread-safe in-memory store."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._proposals: dict[str, Proposal] = {}
        # nonce -> (used_at, expires_at)
        self._nonces: dict[str, tuple[datetime, datetime | None]] = {}
        self._lock = threading.Lock()

    # Users

    def create_user(self, user: User) -> None:
        with self._lock:
            if user.id in self._users:
                raise ConflictError(f"User already exists: {user.id}", existing_id=user.id)
            if any(u.email == user.email for u in self._users.values()):
                raise ConflictError(f"Email already registered: {user.email}")
            self._users[user.id] = replace(user)

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def get_user_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return replace(user)
            return None

    def update_user_webhook(
        self,
        user_id: str,
        webhook_url: str | None,
        webhook_secret: str | None,
    ) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                user.webhook_url = webhook_url
                user.webhook_secret = webhook_secret

    # Proposals

    def create_proposal(self, proposal: Proposal) -> None:
        with self._lock:
            if proposal.id in self._proposals:
                raise ConflictError(f"Proposal already exists: {proposal.id}", existing_id=proposal.id)
            self._proposals[proposal.id] = replace(proposal)

    def get_proposal(self, proposal_id: str) -> Proposal | None:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return replace(proposal) if proposal else None

    def update_proposal_status(
        self,
        proposal_id: str,
        from_status: ProposalStatus | None,
        to_status: ProposalStatus,
    ) -> bool:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                return False
            if from_status is not None and proposal.status != from_status:
                return False
            proposal.status = to_status
            return True

    def get_proposals_for(self, email: str, status: ProposalStatus | None = None) -> list[Proposal]:
        with self._lock:
            matches = [
                replace(p)
                for p in self._proposals.values()
                if p.to_email == email and (status is None or p.status == status)
            ]
        return sorted(matches, key=lambda p: p.slot_start)

    def get_proposals_from(self, user_id: str) -> list[Proposal]:
        with self._lock:
            matches = [replace(p) for p in self._proposals.values() if p.from_user_id == user_id]
        return sorted(matches, key=lambda p: p.created_at, reverse=True)

    def expire_pending_older_than(self, now: datetime) -> int:
        count = 0
        with self._lock:
            for proposal in self._proposals.values():
                if proposal.status == ProposalStatus.PENDING and proposal.expires_at < now:
                    proposal.status = ProposalStatus.EXPIRED
                    count += 1
        return count

    # Nonces

    def is_nonce_used(self, nonce: str) -> bool:
        with self._lock:
            return nonce in self._nonces

    def mark_nonce_used(self, nonce: str, used_at: datetime, expires_at: datetime | None = None) -> None:
        with self._lock:
            if nonce in self._nonces:
                raise NonceAlreadyUsed(nonce)
            self._nonces[nonce] = (used_at, expires_at)

    def purge_nonces_older_than(self, cutoff: datetime, now: datetime | None = None) -> int:
        now = now or utcnow()
        with self._lock:
            expired = [
                n
                for n, (used_at, expires_at) in self._nonces.items()
                if used_at < cutoff and (expires_at is None or expires_at < now)
            ]
            for nonce in expired:
                del self._nonces[nonce]
        return len(expired)

    def nonce_count(self) -> int:
        with self._lock:
            return len(self._nonces)
