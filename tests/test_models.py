"""Tests for meetd.models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from meetd.core.exceptions import ValidationException
from meetd.models import (
    AcceptResult,
    CalendarEvent,
    InboxProposal,
    Proposal,
    ProposalSlot,
    ProposalStatus,
    SignedProposal,
    TimeSlot,
    TimeWindow,
    User,
)

START = datetime(2026, 2, 3, 10, 0, tzinfo=UTC)


def wire_proposal(**overrides) -> dict:
    data = {
        "version": 1,
        "from": "alice@example.com",
        "from_pubkey": "pk",
        "to": "bob@example.com",
        "slot": {"start": "2026-02-03T10:00:00Z", "duration_minutes": 30},
        "title": None,
        "description": None,
        "nonce": "n",
        "expires_at": "2026-02-09T08:00:00Z",
        "signature": "sig",
    }
    data.update(overrides)
    return data


class TestProposalStatus:
    def test_parse(self):
        assert ProposalStatus.parse("accepted") is ProposalStatus.ACCEPTED
        assert ProposalStatus.parse("bogus") is None
        assert ProposalStatus.parse(None) is None

    def test_terminal(self):
        assert not ProposalStatus.PENDING.is_terminal
        assert all(s.is_terminal for s in ProposalStatus if s is not ProposalStatus.PENDING)


class TestProposalSlot:
    def test_end(self):
        assert ProposalSlot(START, 45).end == START + timedelta(minutes=45)

    def test_naive_start_rejected(self):
        with pytest.raises(ValidationException):
            ProposalSlot(datetime(2026, 2, 3, 10, 0), 30)

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration(self, duration):
        with pytest.raises(ValidationException):
            ProposalSlot(START, duration)


class TestSignedProposalWire:
    def test_from_dict(self):
        proposal = SignedProposal.from_dict(wire_proposal(title="Sync"))

        assert proposal.from_ == "alice@example.com"
        assert proposal.slot.start == START
        assert proposal.title == "Sync"
        assert proposal.to_dict() == wire_proposal(title="Sync")

    @pytest.mark.parametrize("missing", ["version", "from", "to", "slot", "nonce", "expires_at"])
    def test_missing_field(self, missing):
        data = wire_proposal()
        del data[missing]

        with pytest.raises(ValidationException) as exc_info:
            SignedProposal.from_dict(data)

        assert missing in exc_info.value.message

    def test_boolean_version_rejected(self):
        with pytest.raises(ValidationException):
            SignedProposal.from_dict(wire_proposal(version=True))

    def test_not_an_object(self):
        with pytest.raises(ValidationException):
            SignedProposal.from_dict(["not", "a", "dict"])


class TestTimeWindow:
    def test_parse(self):
        window = TimeWindow.parse("2026-02-01..2026-02-07")

        assert window.start == datetime(2026, 2, 1, tzinfo=UTC)
        assert window.end == datetime(2026, 2, 7, 23, 59, 59, tzinfo=UTC)

    @pytest.mark.parametrize("text", ["2026-02-01", "2026-02-01..", "yesterday..today", "a..b..c"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValidationException):
            TimeWindow.parse(text)


class TestTimeSlot:
    def test_empty_slot_rejected(self):
        with pytest.raises(ValidationException):
            TimeSlot(START, START)

    def test_overlaps_is_half_open(self):
        slot = TimeSlot(START, START + timedelta(minutes=30))

        assert not slot.overlaps(TimeSlot(START + timedelta(minutes=30), START + timedelta(hours=1)))
        assert slot.overlaps(TimeSlot(START + timedelta(minutes=29), START + timedelta(hours=1)))
        assert slot.duration_minutes == 30


class TestResults:
    def test_inbox_proposal_to_dict(self):
        proposal = Proposal(
            id="prop_1",
            from_user_id="u-alice",
            to_email="bob@example.com",
            slot_start=START,
            duration_minutes=30,
            nonce="n",
            expires_at=START + timedelta(days=6),
            signature="sig",
        )

        assert InboxProposal.from_proposal(proposal, "alice@example.com").to_dict() == {
            "id": "prop_1",
            "from": "alice@example.com",
            "slot": {"start": "2026-02-03T10:00:00Z", "duration_minutes": 30},
            "title": None,
            "expires_at": "2026-02-09T10:00:00Z",
            "status": "pending",
        }

    def test_accept_result_to_dict(self):
        result = AcceptResult(
            "prop_1",
            ProposalStatus.ACCEPTED,
            CalendarEvent("Meeting", START, START + timedelta(minutes=30), "https://c/e"),
        )

        assert result.to_dict()["event"] == {
            "title": "Meeting",
            "start": "2026-02-03T10:00:00Z",
            "end": "2026-02-03T10:30:00Z",
            "calendar_link": "https://c/e",
        }

    def test_user_public_view_hides_secrets(self):
        user = User(id="u1", email="u1@example.com", public_key="pk", private_key="sk", webhook_secret="s")

        data = user.to_dict()

        assert "private_key" not in data
        assert "webhook_secret" not in data
