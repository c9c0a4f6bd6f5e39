# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Proposal lifecycle: issue, receive, accept, decline and expire.

Status transitions:

    pending -> accepted   (accept, guarded by status = pending)
    pending -> declined   (decline)
    pending -> expired    (expiry sweep, or an accept after expires_at)

Decline is not status-guarded: it overwrites whatever status the proposal
has. Accept is guarded, so two concurrent accepts produce exactly one
transition and the loser gets InvalidStateError.

Webhooks are dispatched as detached tasks after the state change has been
persisted; no operation waits on delivery.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from ..calendar.base import CalendarProvider
from ..core.config import CoreSettings, get_config
from ..core.exceptions import (
    CalendarError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ValidationException,
    VerificationFailed,
    VerificationReason,
)
from ..core.temporal import to_unix, utcnow
from ..crypto.signing import Keypair
from ..models import (
    DEFAULT_MEETING_TITLE,
    AcceptResult,
    CalendarEvent,
    InboxProposal,
    IssueResult,
    Proposal,
    ProposalStatus,
    User,
)
from ..protocol.codec import build_signed_proposal, decode_envelope, encode_envelope, verify_proposal
from ..protocol.nonces import NonceLedger, generate_nonce
from ..storage.base import ProposalStore
from ..webhook.dispatcher import WebhookDispatcher
from ..webhook.events import WebhookEvent, WebhookEventData, WebhookEventType

logger = logging.getLogger(__name__)

CalendarFactory = Callable[[User], CalendarProvider | None]


def new_proposal_id() -> str:
    """Server-assigned proposal id: ``prop_`` plus 12 hex characters."""
    return f"prop_{uuid.uuid4().hex[:12]}"


class ProposalService:
    """Runs the proposal lifecycle against a ProposalStore.

    Args:
        store: Persistence collaborator.
        dispatcher: Webhook dispatcher. Without one, no webhooks are sent.
        calendar_factory: Returns a user's calendar, or None if the user
            has not connected one.
        config: Settings; defaults to the global config.
        ledger: Nonce ledger; defaults to one over ``store``.
    """

    def __init__(
        self,
        store: ProposalStore,
        dispatcher: WebhookDispatcher | None = None,
        calendar_factory: CalendarFactory | None = None,
        config: CoreSettings | None = None,
        ledger: NonceLedger | None = None,
    ) -> None:
        config = config or get_config()
        self._store = store
        self._dispatcher = dispatcher
        self._calendar_factory = calendar_factory
        self._server_url = config.server_url.rstrip("/")
        self._ttl = config.proposal_ttl
        self._ledger = ledger or NonceLedger(store, retention=config.nonce_retention)

    @property
    def ledger(self) -> NonceLedger:
        return self._ledger

    # =========================================================================
    # ISSUE
    # =========================================================================

    async def issue(
        self,
        sender: User,
        to_email: str,
        slot_start: datetime,
        duration_minutes: int,
        title: str | None = None,
        description: str | None = None,
        now: datetime | None = None,
    ) -> IssueResult:
        """Create, sign and persist a pending proposal from ``sender``.

        Raises:
            ValidationException: If the recipient or slot is invalid.
        """
        if not to_email or not to_email.strip():
            raise ValidationException("Recipient email is required", field="to")

        now = now or utcnow()
        keypair = Keypair.from_private_key_base64(sender.private_key)
        signed = build_signed_proposal(
            keypair,
            from_=sender.email,
            to=to_email,
            slot_start=slot_start,
            duration_minutes=duration_minutes,
            nonce=generate_nonce(),
            expires_at=now + self._ttl,
            title=title,
            description=description,
        )

        proposal = Proposal(
            id=new_proposal_id(),
            from_user_id=sender.id,
            to_email=to_email,
            slot_start=signed.slot.start,
            duration_minutes=signed.slot.duration_minutes,
            title=title,
            description=description,
            nonce=signed.nonce,
            expires_at=signed.expires_at,
            signature=signed.signature,
            created_at=to_unix(now),
        )
        self._store.create_proposal(proposal)
        logger.info(f"Issued proposal {proposal.id} from {sender.email} to {to_email}")

        recipient = self._store.get_user_by_email(to_email)
        if recipient is not None:
            self._notify(
                recipient,
                WebhookEventType.PROPOSAL_RECEIVED,
                WebhookEventData.proposal_received(
                    proposal_id=proposal.id,
                    from_=sender.email,
                    from_pubkey=sender.public_key,
                    slot=signed.slot,
                    title=title,
                    expires_at=signed.expires_at,
                    signature=signed.signature,
                ),
            )

        return IssueResult(
            proposal_id=proposal.id,
            signed_proposal=encode_envelope(signed),
            accept_link=f"{self._server_url}/accept/{proposal.id}",
        )

    # =========================================================================
    # RECEIVE
    # =========================================================================

    async def receive(
        self,
        recipient: User,
        envelope: str,
        auto_accept: bool = False,
        now: datetime | None = None,
    ) -> AcceptResult:
        """Verify a signed proposal addressed to ``recipient`` and store it.

        Checks run in order and the first failure aborts with nothing
        persisted and the nonce left unused: addressee, signature, expiry,
        nonce reuse.

        Raises:
            ValidationException: If the envelope cannot be decoded.
            NotAuthorizedError: If the proposal is addressed to someone else.
            InvalidKeyMaterial: If the sender key or signature is malformed.
            VerificationFailed: On a bad signature, expiry or replay.
            NonceAlreadyUsed: If a concurrent receive recorded the nonce first.
        """
        now = now or utcnow()
        signed = decode_envelope(envelope)

        if signed.to != recipient.email:
            raise NotAuthorizedError("Proposal is not addressed to you", user=recipient.email)

        if not verify_proposal(signed.from_pubkey, signed):
            raise VerificationFailed(VerificationReason.BAD_SIGNATURE)

        if signed.expires_at < now:
            raise VerificationFailed(VerificationReason.EXPIRED)

        if self._ledger.is_used(signed.nonce):
            raise VerificationFailed(VerificationReason.REPLAYED)

        self._ledger.mark_used(signed.nonce, now, expires_at=signed.expires_at)

        sender = self._store.get_user_by_email(signed.from_)
        proposal = Proposal(
            id=new_proposal_id(),
            from_user_id=sender.id if sender else signed.from_,
            to_email=recipient.email,
            slot_start=signed.slot.start,
            duration_minutes=signed.slot.duration_minutes,
            title=signed.title,
            description=signed.description,
            nonce=signed.nonce,
            expires_at=signed.expires_at,
            signature=signed.signature,
            created_at=to_unix(now),
        )
        self._store.create_proposal(proposal)
        logger.info(f"Received proposal {proposal.id} from {signed.from_} for {recipient.email}")

        if auto_accept:
            if not self._store.update_proposal_status(proposal.id, ProposalStatus.PENDING, ProposalStatus.ACCEPTED):
                current = self._store.get_proposal(proposal.id)
                raise InvalidStateError(proposal.id, current.status if current else proposal.status, "accept")
            return await self._complete_accept(proposal, recipient, signed.from_, sender)

        self._notify(
            recipient,
            WebhookEventType.PROPOSAL_RECEIVED,
            WebhookEventData.proposal_received(
                proposal_id=proposal.id,
                from_=signed.from_,
                from_pubkey=signed.from_pubkey,
                slot=signed.slot,
                title=signed.title,
                expires_at=signed.expires_at,
                signature=signed.signature,
            ),
        )
        return AcceptResult(proposal_id=proposal.id, status=ProposalStatus.PENDING)

    # =========================================================================
    # ACCEPT / DECLINE
    # =========================================================================

    def _get_owned(self, recipient: User, proposal_id: str) -> Proposal:
        proposal = self._store.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        if proposal.to_email != recipient.email:
            raise NotAuthorizedError("Proposal is not addressed to you", user=recipient.email)
        return proposal

    async def accept(self, recipient: User, proposal_id: str, now: datetime | None = None) -> AcceptResult:
        """Accept a pending proposal addressed to ``recipient``.

        Raises:
            NotFoundError: If the proposal does not exist.
            NotAuthorizedError: If it is addressed to someone else.
            InvalidStateError: If it is no longer pending, including when
                it expired before this call.
        """
        now = now or utcnow()
        proposal = self._get_owned(recipient, proposal_id)

        if proposal.status == ProposalStatus.PENDING and proposal.is_expired(now):
            self._store.update_proposal_status(proposal_id, ProposalStatus.PENDING, ProposalStatus.EXPIRED)
            raise InvalidStateError(proposal_id, ProposalStatus.EXPIRED, "accept")

        if not self._store.update_proposal_status(proposal_id, ProposalStatus.PENDING, ProposalStatus.ACCEPTED):
            current = self._store.get_proposal(proposal_id)
            raise InvalidStateError(proposal_id, current.status if current else proposal.status, "accept")

        sender = self._store.get_user(proposal.from_user_id)
        sender_email = sender.email if sender else proposal.from_user_id
        return await self._complete_accept(proposal, recipient, sender_email, sender)

    async def _complete_accept(
        self,
        proposal: Proposal,
        recipient: User,
        sender_email: str,
        sender: User | None,
    ) -> AcceptResult:
        title = proposal.title or DEFAULT_MEETING_TITLE
        calendar_link = await self._create_event(proposal, recipient, title, sender_email)

        if sender is not None:
            self._notify(
                sender,
                WebhookEventType.PROPOSAL_ACCEPTED,
                WebhookEventData.proposal_accepted(proposal.id, recipient.email, calendar_link),
            )

        logger.info(f"Proposal {proposal.id} accepted by {recipient.email}")
        return AcceptResult(
            proposal_id=proposal.id,
            status=ProposalStatus.ACCEPTED,
            event=CalendarEvent(
                title=title,
                start=proposal.slot_start,
                end=proposal.slot_end,
                calendar_link=calendar_link,
            ),
        )

    async def _create_event(
        self,
        proposal: Proposal,
        recipient: User,
        title: str,
        attendee: str,
    ) -> str | None:
        if self._calendar_factory is None:
            return None
        calendar = self._calendar_factory(recipient)
        if calendar is None:
            return None
        try:
            created = await calendar.create_event(
                title, proposal.description, proposal.slot_start, proposal.slot_end, attendee
            )
        except CalendarError as e:
            logger.warning(f"Calendar event for proposal {proposal.id} not created: {e}")
            return None
        return created.html_link

    async def decline(self, recipient: User, proposal_id: str) -> Proposal:
        """Decline a proposal addressed to ``recipient``.

        The status is overwritten whatever it was.

        Raises:
            NotFoundError: If the proposal does not exist.
            NotAuthorizedError: If it is addressed to someone else.
        """
        proposal = self._get_owned(recipient, proposal_id)
        self._store.update_proposal_status(proposal_id, None, ProposalStatus.DECLINED)
        proposal.status = ProposalStatus.DECLINED
        logger.info(f"Proposal {proposal_id} declined by {recipient.email}")

        sender = self._store.get_user(proposal.from_user_id)
        if sender is not None:
            self._notify(
                sender,
                WebhookEventType.PROPOSAL_DECLINED,
                WebhookEventData.proposal_declined(proposal_id, recipient.email),
            )
        return proposal

    # =========================================================================
    # EXPIRY
    # =========================================================================

    def expire_sweep(self, now: datetime | None = None) -> int:
        """Expire every pending proposal past its ``expires_at``.

        Returns:
            Number of proposals expired by this call.
        """
        count = self._store.expire_pending_older_than(now or utcnow())
        if count > 0:
            logger.info(f"Expired {count} pending proposals")
        return count

    # =========================================================================
    # READS
    # =========================================================================

    def get_proposal(self, user: User, proposal_id: str) -> Proposal:
        """Fetch a proposal visible to ``user`` as sender or recipient."""
        proposal = self._store.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        if proposal.from_user_id != user.id and proposal.to_email != user.email:
            raise NotAuthorizedError("Not a party to this proposal", user=user.email)
        return proposal

    def inbox(self, user: User, status: ProposalStatus | None = None) -> list[InboxProposal]:
        """Proposals addressed to ``user``, earliest slot first."""
        self.expire_sweep()
        proposals = self._store.get_proposals_for(user.email, status)

        emails: dict[str, str] = {}
        items = []
        for proposal in proposals:
            if proposal.from_user_id not in emails:
                sender = self._store.get_user(proposal.from_user_id)
                emails[proposal.from_user_id] = sender.email if sender else proposal.from_user_id
            items.append(InboxProposal.from_proposal(proposal, emails[proposal.from_user_id]))
        return items

    def sent(self, user: User) -> list[Proposal]:
        """Proposals sent by ``user``, newest first."""
        return self._store.get_proposals_from(user.id)

    # =========================================================================
    # WEBHOOKS
    # =========================================================================

    def _notify(self, user: User, event_type: WebhookEventType, data: WebhookEventData) -> None:
        if self._dispatcher is None or not user.has_webhook:
            return
        self._dispatcher.dispatch(user.webhook_url, user.webhook_secret, WebhookEvent(event_type, data))
