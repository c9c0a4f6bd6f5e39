"""Ed25519 keypairs for signing meeting proposals.

Keys travel as base64 of their raw fixed-width encodings:
- private key: 32 bytes
- public key: 32 bytes
- signature: 64 bytes

Anything that decodes to a different length is structurally invalid and
raises InvalidKeyMaterial. A well-formed signature that does not match
simply verifies as False.
"""

from __future__ import annotations

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ..core.exceptions import InvalidKeyMaterial

PRIVATE_KEY_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


def _b64decode_fixed(value: str, length: int, kind: str) -> bytes:
    """Decode standard base64 and enforce the expected byte length."""
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidKeyMaterial(f"Invalid base64 {kind}: {e}", kind=kind) from e
    if len(raw) != length:
        raise InvalidKeyMaterial(
            f"Invalid {kind} length: expected {length} bytes, got {len(raw)}",
            kind=kind,
        )
    return raw


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


class PublicKey:
    """Verifying half of an Ed25519 keypair."""

    def __init__(self, public_key_bytes: bytes):
        if len(public_key_bytes) != PUBLIC_KEY_LENGTH:
            raise InvalidKeyMaterial(
                f"Invalid public key length: expected {PUBLIC_KEY_LENGTH} bytes, got {len(public_key_bytes)}",
                kind="public key",
            )
        try:
            self._key = Ed25519PublicKey.from_public_bytes(public_key_bytes)
        except ValueError as e:
            raise InvalidKeyMaterial(f"Invalid Ed25519 public key: {e}", kind="public key") from e
        self._raw = public_key_bytes

    @classmethod
    def from_base64(cls, public_key: str) -> PublicKey:
        """Create from a base64-encoded 32-byte public key."""
        return cls(_b64decode_fixed(public_key, PUBLIC_KEY_LENGTH, "public key"))

    @property
    def raw(self) -> bytes:
        return self._raw

    def to_base64(self) -> str:
        return _b64encode(self._raw)

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify a raw signature over ``message``.

        Returns:
            True if the signature matches, False otherwise.

        Raises:
            InvalidKeyMaterial: If the signature is not 64 bytes.
        """
        if len(signature) != SIGNATURE_LENGTH:
            raise InvalidKeyMaterial(
                f"Invalid signature length: expected {SIGNATURE_LENGTH} bytes, got {len(signature)}",
                kind="signature",
            )
        try:
            self._key.verify(signature, message)
            return True
        except InvalidSignature:
            return False

    def verify_b64(self, message: str, signature_b64: str) -> bool:
        """Verify a base64 signature over a text message (UTF-8)."""
        signature = _b64decode_fixed(signature_b64, SIGNATURE_LENGTH, "signature")
        return self.verify(message.encode("utf-8"), signature)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    def __repr__(self) -> str:
        return f"PublicKey({self.to_base64()!r})"


class Keypair:
    """Ed25519 keypair owned by one agent.

    The private key is only ever exported as base64 for the persistence
    collaborator to store encrypted at rest.
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = PublicKey(
            private_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        )

    @classmethod
    def generate(cls) -> Keypair:
        """Generate a new random keypair from the OS CSPRNG."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_key_base64(cls, private_key: str) -> Keypair:
        """Create from a base64-encoded 32-byte private key."""
        raw = _b64decode_fixed(private_key, PRIVATE_KEY_LENGTH, "private key")
        return cls(Ed25519PrivateKey.from_private_bytes(raw))

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    def public_key_base64(self) -> str:
        return self._public_key.to_base64()

    def private_key_base64(self) -> str:
        """Get the private key as base64 (for encrypted storage only)."""
        raw = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return _b64encode(raw)

    def sign(self, message: bytes) -> bytes:
        """Sign a message, returning the 64-byte signature."""
        return self._private_key.sign(message)

    def sign_b64(self, message: str) -> str:
        """Sign a text message (UTF-8) and return the base64 signature."""
        return _b64encode(self.sign(message.encode("utf-8")))

    def __repr__(self) -> str:
        return f"Keypair(public_key={self.public_key_base64()!r})"


def verify(message: bytes, signature: bytes, public_key: PublicKey | str) -> bool:
    """Verify an Ed25519 signature.

    Args:
        message: The signed bytes
        signature: The raw 64-byte signature
        public_key: A PublicKey or its base64 encoding

    Returns:
        True if the signature matches, False otherwise.

    Raises:
        InvalidKeyMaterial: If the key or signature is structurally invalid.
    """
    if isinstance(public_key, str):
        public_key = PublicKey.from_base64(public_key)
    return public_key.verify(message, signature)


def generate_webhook_secret() -> str:
    """Generate a random webhook secret (32 bytes, hex encoded)."""
    return secrets.token_hex(32)
