"""Signed-proposal protocol: canonical payloads, envelopes and replay protection."""

from .codec import (
    EnvelopeVerification,
    build_signed_proposal,
    decode_envelope,
    encode_envelope,
    payload_builder,
    sign_proposal,
    signing_payload,
    supported_versions,
    verify_envelope,
    verify_proposal,
)
from .nonces import NonceLedger, NonceStore, generate_nonce

__all__ = [
    "EnvelopeVerification",
    "NonceLedger",
    "NonceStore",
    "build_signed_proposal",
    "decode_envelope",
    "encode_envelope",
    "generate_nonce",
    "payload_builder",
    "sign_proposal",
    "signing_payload",
    "supported_versions",
    "verify_envelope",
    "verify_proposal",
]
