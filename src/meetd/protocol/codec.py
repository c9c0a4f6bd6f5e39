"""Signed-proposal codec.

The signature covers a canonical, pipe-delimited signing payload. For
version 1 the payload is:

    version|from|to|slot.start|slot.duration_minutes|title-or-empty|nonce|expires_at

with both timestamps rendered as RFC 3339 in UTC (``+00:00`` offset).
``signature`` is never part of its own payload, and ``description`` is not
covered at all: a relay can rewrite the description without invalidating
the proposal.

Changing the payload layout means registering a builder for a new version
number. Builders for older versions stay registered so proposals signed
under them keep verifying.

Envelope (what travels between agents): base64(JSON(SignedProposal)).
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..core.exceptions import (
    InvalidKeyMaterial,
    MeetdException,
    ValidationException,
    VerificationFailed,
    VerificationReason,
)
from ..core.temporal import format_rfc3339
from ..crypto.signing import Keypair, PublicKey
from ..models import CURRENT_PROPOSAL_VERSION, ProposalSlot, SignedProposal

logger = logging.getLogger(__name__)

PayloadBuilder = Callable[[SignedProposal], str]

_PAYLOAD_BUILDERS: dict[int, PayloadBuilder] = {}


def payload_builder(version: int) -> Callable[[PayloadBuilder], PayloadBuilder]:
    """Register the signing-payload rule for a proposal version."""

    def decorator(func: PayloadBuilder) -> PayloadBuilder:
        if version in _PAYLOAD_BUILDERS:
            raise ValueError(f"Payload builder already registered for version {version}")
        _PAYLOAD_BUILDERS[version] = func
        return func

    return decorator


def supported_versions() -> list[int]:
    return sorted(_PAYLOAD_BUILDERS)


@payload_builder(1)
def _payload_v1(proposal: SignedProposal) -> str:
    return "|".join(
        [
            str(proposal.version),
            proposal.from_,
            proposal.to,
            format_rfc3339(proposal.slot.start),
            str(proposal.slot.duration_minutes),
            proposal.title or "",
            proposal.nonce,
            format_rfc3339(proposal.expires_at),
        ]
    )


# =============================================================================
# SIGNING AND VERIFICATION
# =============================================================================


def signing_payload(proposal: SignedProposal) -> str:
    """Build the canonical string signed for ``proposal``.

    Raises:
        VerificationFailed: If no payload rule exists for the proposal version.
    """
    builder = _PAYLOAD_BUILDERS.get(proposal.version)
    if builder is None:
        raise VerificationFailed(
            VerificationReason.UNSUPPORTED_VERSION,
            f"Unsupported proposal version: {proposal.version}",
        )
    return builder(proposal)


def sign_proposal(keypair: Keypair, proposal: SignedProposal) -> str:
    """Sign ``proposal`` in place and return the base64 signature.

    Only the ``signature`` field is written.
    """
    signature = keypair.sign_b64(signing_payload(proposal))
    proposal.signature = signature
    return signature


def verify_proposal(public_key: PublicKey | str, proposal: SignedProposal) -> bool:
    """Verify the signature on ``proposal``.

    The payload is recomputed from the proposal body; whatever is in the
    signature field is only used as the signature to check.

    Returns:
        True if the signature matches the payload and key.

    Raises:
        InvalidKeyMaterial: If the key or signature is structurally invalid.
        VerificationFailed: If the proposal version is unknown.
    """
    if isinstance(public_key, str):
        public_key = PublicKey.from_base64(public_key)
    return public_key.verify_b64(signing_payload(proposal), proposal.signature)


def build_signed_proposal(
    keypair: Keypair,
    from_: str,
    to: str,
    slot_start: datetime,
    duration_minutes: int,
    nonce: str,
    expires_at: datetime,
    title: str | None = None,
    description: str | None = None,
    version: int = CURRENT_PROPOSAL_VERSION,
) -> SignedProposal:
    """Assemble and sign a proposal from ``keypair``'s owner."""
    proposal = SignedProposal(
        version=version,
        from_=from_,
        from_pubkey=keypair.public_key_base64(),
        to=to,
        slot=ProposalSlot(start=slot_start, duration_minutes=duration_minutes),
        title=title,
        description=description,
        nonce=nonce,
        expires_at=expires_at,
    )
    sign_proposal(keypair, proposal)
    return proposal


# =============================================================================
# ENVELOPE
# =============================================================================


def encode_envelope(proposal: SignedProposal) -> str:
    """Serialize a signed proposal as base64(JSON)."""
    payload = json.dumps(proposal.to_dict(), separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_envelope(envelope: str) -> SignedProposal:
    """Parse a base64(JSON) envelope.

    Raises:
        ValidationException: If the envelope is not base64, not JSON, or
            is missing fields.
    """
    try:
        raw = base64.b64decode(envelope, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ValidationException(f"Invalid base64: {e}", field="signed_proposal") from e

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationException(f"Invalid JSON: {e}", field="signed_proposal") from e

    return SignedProposal.from_dict(data)


@dataclass
class EnvelopeVerification:
    """Outcome of a read-only envelope check."""

    valid: bool
    proposal: SignedProposal | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "proposal": self.proposal.to_dict() if self.proposal else None,
            "error": self.error,
        }


def verify_envelope(envelope: str) -> EnvelopeVerification:
    """Check an envelope's signature without touching any state.

    Never raises for bad input: every failure is reported as
    ``valid=False`` with an error message. Expiry and nonce reuse are not
    checked here; those belong to the receive path.
    """
    try:
        proposal = decode_envelope(envelope)
    except ValidationException as e:
        return EnvelopeVerification(valid=False, error=e.message)

    try:
        if verify_proposal(proposal.from_pubkey, proposal):
            return EnvelopeVerification(valid=True, proposal=proposal)
        return EnvelopeVerification(valid=False, proposal=proposal, error="Invalid signature")
    except InvalidKeyMaterial as e:
        return EnvelopeVerification(valid=False, proposal=proposal, error=f"Invalid key material: {e.message}")
    except MeetdException as e:
        logger.debug(f"Envelope verification failed: {e.message}")
        return EnvelopeVerification(valid=False, proposal=proposal, error=f"Verification error: {e.message}")
