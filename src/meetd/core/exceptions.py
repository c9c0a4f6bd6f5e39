# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Custom exception hierarchy for Meetd.

Each rejection reason in the proposal protocol gets its own type (or reason
code) so callers can tell a tampered proposal from a replayed one, and a
replay from an opaque storage failure.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class MeetdException(Exception):  # noqa: N818
    """Base exception for all Meetd errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidKeyMaterial(MeetdException):
    """Raised when key or signature bytes are structurally invalid.

    Raised when:
    - Base64 decoding fails
    - A public or private key is not 32 bytes
    - A signature is not 64 bytes

    Distinct from a well-formed signature that simply does not match.
    """

    def __init__(self, message: str, kind: str | None = None):
        details = {}
        if kind:
            details["kind"] = kind
        super().__init__(message, details)
        self.kind = kind


class VerificationReason(str, Enum):
    """Why a signed proposal was rejected."""

    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    REPLAYED = "replayed"
    UNSUPPORTED_VERSION = "unsupported_version"


class VerificationFailed(MeetdException):
    """A well-formed proposal failed verification.

    The ``reason`` attribute distinguishes a bad signature from an expired
    proposal or a replayed nonce.
    """

    def __init__(self, reason: VerificationReason, message: str | None = None):
        default_messages = {
            VerificationReason.BAD_SIGNATURE: "Invalid signature",
            VerificationReason.EXPIRED: "Proposal has expired",
            VerificationReason.REPLAYED: "Nonce already used (replay attack?)",
            VerificationReason.UNSUPPORTED_VERSION: "Unsupported proposal version",
        }
        super().__init__(message or default_messages[reason], {"reason": reason.value})
        self.reason = reason


class NonceAlreadyUsed(MeetdException):
    """Raised when recording a nonce that is already in the ledger."""

    def __init__(self, nonce: str):
        super().__init__("Nonce already used (replay attack?)", {"nonce": nonce})
        self.nonce = nonce


class InvalidStateError(MeetdException):
    """A status-guarded transition was attempted from the wrong state."""

    def __init__(self, proposal_id: str, current_status: Any, attempted: str | None = None):
        status_value = getattr(current_status, "value", current_status)
        message = f"Proposal is already {status_value}"
        details = {"proposal_id": proposal_id, "current_status": status_value}
        if attempted:
            details["attempted"] = attempted
        super().__init__(message, details)
        self.proposal_id = proposal_id
        self.current_status = current_status


class NotFoundError(MeetdException):
    """Exception for resource not found errors."""

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class NotAuthorizedError(MeetdException):
    """The caller is not a party allowed to perform the operation.

    Raised when:
    - Receiving a proposal addressed to someone else
    - Accepting or declining a proposal as anyone but the recipient
    - Viewing a proposal as neither sender nor recipient
    """

    def __init__(self, message: str, user: str | None = None):
        details = {}
        if user:
            details["user"] = user
        super().__init__(message, details)
        self.user = user


class ValidationException(MeetdException):
    """Exception for validation errors.

    Raised when:
    - An envelope is not valid base64 or JSON
    - Required fields are missing
    - Field values are out of range
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConflictError(MeetdException):
    """Exception for conflict errors.

    Raised when:
    - Creating a user whose email is already registered
    - Creating a proposal whose id already exists
    """

    def __init__(self, message: str, existing_id: str | None = None):
        details = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id


class DatabaseException(MeetdException):
    """Exception for persistence collaborator failures."""

    pass


class ConfigException(MeetdException):
    """Exception for configuration errors."""

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


class CalendarError(MeetdException):
    """Exception for calendar provider failures."""

    def __init__(self, message: str, provider: str | None = None):
        details = {}
        if provider:
            details["provider"] = provider
        super().__init__(message, details)
        self.provider = provider


class WebhookDeliveryError(MeetdException):
    """A webhook POST failed or returned a non-2xx status."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        details: dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.status = status
        self.url = url
