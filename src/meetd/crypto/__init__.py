"""Ed25519 key management and secret generation."""

from .signing import (
    PRIVATE_KEY_LENGTH,
    PUBLIC_KEY_LENGTH,
    SIGNATURE_LENGTH,
    Keypair,
    PublicKey,
    generate_webhook_secret,
    verify,
)

__all__ = [
    "PRIVATE_KEY_LENGTH",
    "PUBLIC_KEY_LENGTH",
    "SIGNATURE_LENGTH",
    "Keypair",
    "PublicKey",
    "generate_webhook_secret",
    "verify",
]
