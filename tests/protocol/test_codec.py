"""Tests for meetd.protocol.codec - signing payload and envelopes."""

from __future__ import annotations

import base64
import json
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from meetd.core.exceptions import InvalidKeyMaterial, ValidationException, VerificationFailed, VerificationReason
from meetd.crypto.signing import Keypair
from meetd.models import ProposalSlot
from meetd.protocol.codec import (
    build_signed_proposal,
    decode_envelope,
    encode_envelope,
    sign_proposal,
    signing_payload,
    supported_versions,
    verify_envelope,
    verify_proposal,
)

SLOT_START = datetime(2026, 2, 3, 10, 0, tzinfo=UTC)
EXPIRES_AT = datetime(2026, 2, 10, 10, 0, tzinfo=UTC)


@pytest.fixture
def keypair() -> Keypair:
    return Keypair.generate()


@pytest.fixture
def proposal(keypair):
    return build_signed_proposal(
        keypair,
        from_="alice@example.com",
        to="bob@example.com",
        slot_start=SLOT_START,
        duration_minutes=30,
        nonce="nonce-1",
        expires_at=EXPIRES_AT,
        title="Sync",
        description="Agenda",
    )


# ============================================================================
# Signing payload
# ============================================================================


class TestSigningPayload:
    def test_v1_layout(self, proposal):
        assert signing_payload(proposal) == (
            "1|alice@example.com|bob@example.com|2026-02-03T10:00:00+00:00|30|Sync|nonce-1|2026-02-10T10:00:00+00:00"
        )

    def test_missing_title_is_empty(self, proposal):
        proposal.title = None

        assert "|30||nonce-1|" in signing_payload(proposal)

    def test_unknown_version(self, proposal):
        proposal.version = 99

        with pytest.raises(VerificationFailed) as exc_info:
            signing_payload(proposal)

        assert exc_info.value.reason is VerificationReason.UNSUPPORTED_VERSION

    def test_version_1_registered(self):
        assert 1 in supported_versions()


# ============================================================================
# Sign / verify
# ============================================================================


class TestSignVerify:
    def test_round_trip(self, keypair, proposal):
        assert verify_proposal(keypair.public_key, proposal) is True
        assert verify_proposal(proposal.from_pubkey, proposal) is True

    def test_cross_key_fails(self, proposal):
        assert verify_proposal(Keypair.generate().public_key, proposal) is False

    def test_sign_only_writes_signature(self, keypair, proposal):
        before = replace(proposal, signature="")

        sign_proposal(keypair, proposal)

        assert replace(proposal, signature="") == before

    def test_signature_field_ignored_when_recomputing(self, keypair, proposal):
        signature = proposal.signature
        proposal.signature = ""
        sign_proposal(keypair, proposal)

        assert proposal.signature == signature

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda p: setattr(p, "from_", "mallory@example.com"),
            lambda p: setattr(p, "to", "eve@example.com"),
            lambda p: setattr(p, "slot", ProposalSlot(SLOT_START + timedelta(hours=1), 30)),
            lambda p: setattr(p, "slot", ProposalSlot(SLOT_START, 60)),
            lambda p: setattr(p, "title", "Other"),
            lambda p: setattr(p, "nonce", "nonce-2"),
            lambda p: setattr(p, "expires_at", EXPIRES_AT + timedelta(days=1)),
        ],
        ids=["from", "to", "slot_start", "duration", "title", "nonce", "expires_at"],
    )
    def test_signed_field_mutation_invalidates(self, keypair, proposal, mutate):
        mutate(proposal)

        assert verify_proposal(keypair.public_key, proposal) is False

    def test_description_not_covered(self, keypair, proposal):
        proposal.description = "Rewritten by a relay"

        assert verify_proposal(keypair.public_key, proposal) is True

    def test_malformed_signature_raises(self, keypair, proposal):
        proposal.signature = base64.b64encode(b"short").decode()

        with pytest.raises(InvalidKeyMaterial):
            verify_proposal(keypair.public_key, proposal)


# ============================================================================
# Envelope
# ============================================================================


class TestEnvelope:
    def test_round_trip_reverifies(self, keypair, proposal):
        decoded = decode_envelope(encode_envelope(proposal))

        assert decoded == proposal
        assert verify_proposal(keypair.public_key, decoded) is True

    def test_wire_uses_z_timestamps(self, proposal):
        data = json.loads(base64.b64decode(encode_envelope(proposal)))

        assert data["from"] == "alice@example.com"
        assert data["slot"] == {"start": "2026-02-03T10:00:00Z", "duration_minutes": 30}
        assert data["expires_at"] == "2026-02-10T10:00:00Z"

    def test_invalid_base64(self):
        with pytest.raises(ValidationException, match="Invalid base64"):
            decode_envelope("***")

    def test_invalid_json(self):
        with pytest.raises(ValidationException, match="Invalid JSON"):
            decode_envelope(base64.b64encode(b"{not json").decode())

    def test_missing_field(self, proposal):
        data = proposal.to_dict()
        del data["nonce"]
        envelope = base64.b64encode(json.dumps(data).encode()).decode()

        with pytest.raises(ValidationException):
            decode_envelope(envelope)


class TestVerifyEnvelope:
    def test_valid(self, proposal):
        result = verify_envelope(encode_envelope(proposal))

        assert result.valid is True
        assert result.proposal == proposal
        assert result.error is None

    def test_tampered_reports_invalid(self, proposal):
        proposal.title = "Tampered"

        result = verify_envelope(encode_envelope(proposal))

        assert result.valid is False
        assert result.error == "Invalid signature"

    def test_garbage_never_raises(self):
        result = verify_envelope("not an envelope")

        assert result.valid is False
        assert result.proposal is None

    def test_bad_public_key_reported(self, proposal):
        proposal.from_pubkey = "AAAA"

        result = verify_envelope(encode_envelope(proposal))

        assert result.valid is False
        assert "Invalid key material" in result.error

    def test_unknown_version_reported(self, proposal):
        proposal.version = 7

        result = verify_envelope(encode_envelope(proposal))

        assert result.valid is False
        assert result.error.startswith("Verification error")
