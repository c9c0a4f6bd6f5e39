"""Webhook event payloads.

Wire shape::

    {"event": "proposal.accepted", "timestamp": "...Z", "data": {...}}

``data`` always carries ``proposal_id`` and ``from`` (the email of the party
whose action produced the event). Optional fields are omitted rather than
sent as null.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..core.temporal import format_rfc3339, utcnow
from ..models import ProposalSlot


class WebhookEventType(str, Enum):
    """Proposal lifecycle events delivered to webhooks."""
    PROPOSAL_RECEIVED = "proposal.received"
    PROPOSAL_ACCEPTED = "proposal.accepted"
    PROPOSAL_DECLINED = "proposal.declined"
    PROPOSAL_EXPIRED = "proposal.expired"


@dataclass
class WebhookEventData:
    """Event-specific data."""

    proposal_id: str
    from_: str
    from_pubkey: str | None = None
    slot: ProposalSlot | None = None
    title: str | None = None
    expires_at: datetime | None = None
    signature: str | None = None
    calendar_link: str | None = None

    @classmethod
    def proposal_received(
        cls,
        proposal_id: str,
        from_: str,
        from_pubkey: str,
        slot: ProposalSlot,
        title: str | None,
        expires_at: datetime,
        signature: str,
    ) -> WebhookEventData:
        return cls(
            proposal_id=proposal_id,
            from_=from_,
            from_pubkey=from_pubkey,
            slot=slot,
            title=title,
            expires_at=expires_at,
            signature=signature,
        )

    @classmethod
    def proposal_accepted(
        cls, proposal_id: str, from_: str, calendar_link: str | None = None
    ) -> WebhookEventData:
        return cls(proposal_id=proposal_id, from_=from_, calendar_link=calendar_link)

    @classmethod
    def proposal_declined(cls, proposal_id: str, from_: str) -> WebhookEventData:
        return cls(proposal_id=proposal_id, from_=from_)

    @classmethod
    def proposal_expired(cls, proposal_id: str, from_: str) -> WebhookEventData:
        return cls(proposal_id=proposal_id, from_=from_)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"proposal_id": self.proposal_id, "from": self.from_}
        if self.from_pubkey is not None:
            data["from_pubkey"] = self.from_pubkey
        if self.slot is not None:
            data["slot"] = self.slot.to_dict()
        if self.title is not None:
            data["title"] = self.title
        if self.expires_at is not None:
            data["expires_at"] = format_rfc3339(self.expires_at, use_z=True)
        if self.signature is not None:
            data["signature"] = self.signature
        if self.calendar_link is not None:
            data["calendar_link"] = self.calendar_link
        return data


@dataclass
class WebhookEvent:
    """A webhook delivery body."""

    event: WebhookEventType
    data: WebhookEventData
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.timestamp is None:
            self.timestamp = utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.value,
            "timestamp": format_rfc3339(self.timestamp, use_z=True),
            "data": self.data.to_dict(),
        }

    def to_json(self) -> str:
        """Compact JSON, exactly the bytes that get signed."""
        return json.dumps(self.to_dict(), separators=(",", ":"))
