"""Data models for Meetd.

These models represent proposals (both the signed wire envelope and the
server-side record), calendar intervals, users and accept results.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from .core.exceptions import ValidationException
from .core.temporal import ensure_utc, format_rfc3339, from_unix, parse_rfc3339

CURRENT_PROPOSAL_VERSION = 1
DEFAULT_MEETING_TITLE = "Meeting"


# =============================================================================
# ENUMS
# =============================================================================


class ProposalStatus(str, Enum):
    """Lifecycle status of a proposal."""
    PENDING = "pending"      # Initial, awaiting the recipient
    ACCEPTED = "accepted"    # Terminal
    DECLINED = "declined"    # Terminal
    EXPIRED = "expired"      # Terminal, set by the expiry sweep

    @property
    def is_terminal(self) -> bool:
        return self is not ProposalStatus.PENDING

    @classmethod
    def parse(cls, value: str | None) -> ProposalStatus | None:
        """Parse a status string, returning None for unknown values."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class Visibility(str, Enum):
    """How much of a user's calendar is shared with counterparts."""
    BUSY_ONLY = "busy_only"  # Busy/free only
    MASKED = "masked"        # "Busy: Meeting" without details
    FULL = "full"            # Event titles, never attendees/description


# =============================================================================
# FIELD HELPERS
# =============================================================================


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise ValidationException(f"Missing required field: {key}", field=key)
    return data[key]


def _require_str(data: dict[str, Any], key: str) -> str:
    value = _require(data, key)
    if not isinstance(value, str):
        raise ValidationException(f"Field must be a string: {key}", field=key, value=value)
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationException(f"Field must be a string: {key}", field=key, value=value)
    return value


def _require_int(data: dict[str, Any], key: str) -> int:
    value = _require(data, key)
    # bool is an int subclass; a JSON true is not a version number
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationException(f"Field must be an integer: {key}", field=key, value=value)
    return value


# =============================================================================
# SIGNED PROPOSAL (wire format)
# =============================================================================


@dataclass
class ProposalSlot:
    """Proposed meeting start and length."""

    start: datetime
    duration_minutes: int

    def __post_init__(self) -> None:
        self.start = ensure_utc(self.start, field="slot.start")
        if self.duration_minutes <= 0:
            raise ValidationException(
                "duration_minutes must be positive",
                field="slot.duration_minutes",
                value=self.duration_minutes,
            )

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": format_rfc3339(self.start, use_z=True),
            "duration_minutes": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ProposalSlot:
        if not isinstance(data, dict):
            raise ValidationException("slot must be an object", field="slot")
        return cls(
            start=parse_rfc3339(_require_str(data, "start"), field="slot.start"),
            duration_minutes=_require_int(data, "duration_minutes"),
        )


@dataclass
class SignedProposal:
    """Signed proposal exchanged between agents.

    ``signature`` covers the canonical signing payload (see
    meetd.protocol.codec). ``description`` is carried but NOT covered by
    the signature.
    """

    version: int
    from_: str
    from_pubkey: str
    to: str
    slot: ProposalSlot
    nonce: str
    expires_at: datetime
    title: str | None = None
    description: str | None = None
    signature: str = ""

    def __post_init__(self) -> None:
        self.expires_at = ensure_utc(self.expires_at, field="expires_at")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON wire representation."""
        return {
            "version": self.version,
            "from": self.from_,
            "from_pubkey": self.from_pubkey,
            "to": self.to,
            "slot": self.slot.to_dict(),
            "title": self.title,
            "description": self.description,
            "nonce": self.nonce,
            "expires_at": format_rfc3339(self.expires_at, use_z=True),
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Any) -> SignedProposal:
        """Create from the JSON wire representation.

        Raises:
            ValidationException: If a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValidationException("Signed proposal must be a JSON object")
        return cls(
            version=_require_int(data, "version"),
            from_=_require_str(data, "from"),
            from_pubkey=_require_str(data, "from_pubkey"),
            to=_require_str(data, "to"),
            slot=ProposalSlot.from_dict(_require(data, "slot")),
            title=_optional_str(data, "title"),
            description=_optional_str(data, "description"),
            nonce=_require_str(data, "nonce"),
            expires_at=parse_rfc3339(_require_str(data, "expires_at"), field="expires_at"),
            signature=_require_str(data, "signature") if "signature" in data else "",
        )


# =============================================================================
# PROPOSAL (server-side record)
# =============================================================================


@dataclass
class Proposal:
    """A proposal as stored by a server, sender side or recipient side."""

    id: str
    from_user_id: str
    to_email: str
    slot_start: datetime
    duration_minutes: int
    nonce: str
    expires_at: datetime
    signature: str
    title: str | None = None
    description: str | None = None
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: int = 0

    def __post_init__(self) -> None:
        self.slot_start = ensure_utc(self.slot_start, field="slot_start")
        self.expires_at = ensure_utc(self.expires_at, field="expires_at")

    @property
    def slot(self) -> ProposalSlot:
        return ProposalSlot(start=self.slot_start, duration_minutes=self.duration_minutes)

    @property
    def slot_end(self) -> datetime:
        return self.slot_start + timedelta(minutes=self.duration_minutes)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "to_email": self.to_email,
            "slot_start": format_rfc3339(self.slot_start, use_z=True),
            "duration_minutes": self.duration_minutes,
            "title": self.title,
            "description": self.description,
            "nonce": self.nonce,
            "expires_at": format_rfc3339(self.expires_at, use_z=True),
            "signature": self.signature,
            "status": self.status.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Proposal:
        """Create from database row (timestamps as Unix seconds)."""
        return cls(
            id=row["id"],
            from_user_id=row["from_user_id"],
            to_email=row["to_email"],
            slot_start=from_unix(row["slot_start"]),
            duration_minutes=row["duration_minutes"],
            title=row.get("title"),
            description=row.get("description"),
            nonce=row["nonce"],
            expires_at=from_unix(row["expires_at"]),
            signature=row["signature"],
            status=ProposalStatus.parse(row.get("status")) or ProposalStatus.PENDING,
            created_at=row.get("created_at", 0),
        )


@dataclass
class InboxProposal:
    """Proposal summary for inbox and sent listings."""

    id: str
    from_: str
    slot: ProposalSlot
    expires_at: datetime
    status: ProposalStatus
    title: str | None = None

    @classmethod
    def from_proposal(cls, proposal: Proposal, from_email: str | None = None) -> InboxProposal:
        return cls(
            id=proposal.id,
            from_=from_email or proposal.from_user_id,
            slot=proposal.slot,
            title=proposal.title,
            expires_at=proposal.expires_at,
            status=proposal.status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_,
            "slot": self.slot.to_dict(),
            "title": self.title,
            "expires_at": format_rfc3339(self.expires_at, use_z=True),
            "status": self.status.value,
        }


@dataclass
class CalendarEvent:
    """Calendar event summary returned after an accept."""

    title: str
    start: datetime
    end: datetime
    calendar_link: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "start": format_rfc3339(self.start, use_z=True),
            "end": format_rfc3339(self.end, use_z=True),
            "calendar_link": self.calendar_link,
        }


@dataclass
class IssueResult:
    """Result of issuing a proposal."""

    proposal_id: str
    signed_proposal: str
    accept_link: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "signed_proposal": self.signed_proposal,
            "accept_link": self.accept_link,
        }


@dataclass
class AcceptResult:
    """Result of accepting (or receiving-and-accepting) a proposal."""

    proposal_id: str
    status: ProposalStatus
    event: CalendarEvent | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "status": self.status.value,
            "event": self.event.to_dict() if self.event else None,
        }


# =============================================================================
# CALENDAR INTERVALS
# =============================================================================


@dataclass
class TimeSlot:
    """A half-open period of time ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValidationException("TimeSlot end must be after start", field="end", value=self.end)

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: TimeSlot | BusyPeriod) -> bool:
        """Check if this slot overlaps with another interval."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: TimeSlot) -> bool:
        """Check if this slot contains another."""
        return self.start <= other.start and self.end >= other.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": format_rfc3339(self.start, use_z=True),
            "end": format_rfc3339(self.end, use_z=True),
        }


@dataclass
class AvailableSlot(TimeSlot):
    """A candidate slot with a preference score in [0, 1]."""

    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["score"] = self.score
        return data


@dataclass
class BusyPeriod:
    """A half-open interval during which a party is unavailable."""

    start: datetime
    end: datetime
    title: str | None = None


@dataclass
class TimeWindow:
    """Time window for availability queries."""

    start: datetime
    end: datetime

    @classmethod
    def parse(cls, text: str) -> TimeWindow:
        """Parse a window string like ``2026-02-01..2026-02-07``.

        The start is midnight UTC of the first day, the end 23:59:59 UTC
        of the last day.
        """
        parts = text.split("..")
        if len(parts) != 2:
            raise ValidationException("Invalid window format. Use: YYYY-MM-DD..YYYY-MM-DD", field="window", value=text)
        try:
            start = datetime.strptime(parts[0].strip(), "%Y-%m-%d")
            end = datetime.strptime(parts[1].strip(), "%Y-%m-%d")
        except ValueError as e:
            raise ValidationException(f"Invalid window date: {e}", field="window", value=text) from e
        return cls(
            start=start.replace(tzinfo=UTC),
            end=end.replace(hour=23, minute=59, second=59, tzinfo=UTC),
        )


# =============================================================================
# USERS
# =============================================================================


@dataclass
class User:
    """A local account known to this server."""

    id: str
    email: str
    public_key: str
    private_key: str
    google_refresh_token: str | None = None
    visibility: Visibility = Visibility.BUSY_ONLY
    webhook_url: str | None = None
    webhook_secret: str | None = None
    created_at: int = 0

    @property
    def has_webhook(self) -> bool:
        return bool(self.webhook_url and self.webhook_secret)

    def to_dict(self) -> dict[str, Any]:
        """Public view; never includes key material or secrets."""
        return {
            "id": self.id,
            "email": self.email,
            "public_key": self.public_key,
            "visibility": self.visibility.value,
            "webhook_url": self.webhook_url,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> User:
        return cls(
            id=row["id"],
            email=row["email"],
            public_key=row["public_key"],
            private_key=row["private_key"],
            google_refresh_token=row.get("google_refresh_token"),
            visibility=Visibility(row.get("visibility") or Visibility.BUSY_ONLY.value),
            webhook_url=row.get("webhook_url"),
            webhook_secret=row.get("webhook_secret"),
            created_at=row.get("created_at", 0),
        )
