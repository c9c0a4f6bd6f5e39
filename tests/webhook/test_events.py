"""Tests for meetd.webhook.events - webhook payload shape."""

from __future__ import annotations

import json
from datetime import UTC, datetime

from meetd.models import ProposalSlot
from meetd.webhook.events import WebhookEvent, WebhookEventData, WebhookEventType

TS = datetime(2026, 2, 2, 8, 0, tzinfo=UTC)


class TestWebhookEventData:
    def test_received_carries_proposal_details(self):
        data = WebhookEventData.proposal_received(
            proposal_id="prop_1",
            from_="alice@example.com",
            from_pubkey="pk",
            slot=ProposalSlot(datetime(2026, 2, 3, 10, 0, tzinfo=UTC), 30),
            title=None,
            expires_at=datetime(2026, 2, 9, 8, 0, tzinfo=UTC),
            signature="sig",
        ).to_dict()

        assert data == {
            "proposal_id": "prop_1",
            "from": "alice@example.com",
            "from_pubkey": "pk",
            "slot": {"start": "2026-02-03T10:00:00Z", "duration_minutes": 30},
            "expires_at": "2026-02-09T08:00:00Z",
            "signature": "sig",
        }

    def test_accepted_omits_missing_link(self):
        data = WebhookEventData.proposal_accepted("prop_1", "bob@example.com").to_dict()

        assert data == {"proposal_id": "prop_1", "from": "bob@example.com"}

    def test_accepted_with_link(self):
        data = WebhookEventData.proposal_accepted("prop_1", "bob@example.com", "https://c/e").to_dict()

        assert data["calendar_link"] == "https://c/e"

    def test_declined_and_expired_minimal(self):
        assert WebhookEventData.proposal_declined("p", "b@example.com").to_dict() == {
            "proposal_id": "p",
            "from": "b@example.com",
        }
        assert WebhookEventData.proposal_expired("p", "a@example.com").to_dict() == {
            "proposal_id": "p",
            "from": "a@example.com",
        }


class TestWebhookEvent:
    def test_to_json_is_compact(self):
        event = WebhookEvent(
            WebhookEventType.PROPOSAL_DECLINED,
            WebhookEventData.proposal_declined("p", "b@example.com"),
            timestamp=TS,
        )

        assert event.to_json() == (
            '{"event":"proposal.declined","timestamp":"2026-02-02T08:00:00Z",'
            '"data":{"proposal_id":"p","from":"b@example.com"}}'
        )

    def test_timestamp_defaults_to_now(self):
        event = WebhookEvent(WebhookEventType.PROPOSAL_EXPIRED, WebhookEventData.proposal_expired("p", "a@x.com"))

        assert json.loads(event.to_json())["timestamp"].endswith("Z")

    def test_event_type_values(self):
        assert [t.value for t in WebhookEventType] == [
            "proposal.received",
            "proposal.accepted",
            "proposal.declined",
            "proposal.expired",
        ]
