"""Meetd Core - configuration, logging and the exception hierarchy."""

from .config import CoreSettings, clear_config_cache, get_config
from .exceptions import (
    CalendarError,
    ConfigException,
    ConflictError,
    DatabaseException,
    InvalidKeyMaterial,
    InvalidStateError,
    MeetdException,
    NonceAlreadyUsed,
    NotAuthorizedError,
    NotFoundError,
    ValidationException,
    VerificationFailed,
    VerificationReason,
    WebhookDeliveryError,
)
from .logging import configure_logging, correlation_context, redact

__all__ = [
    "CalendarError",
    "ConfigException",
    "ConflictError",
    "CoreSettings",
    "DatabaseException",
    "InvalidKeyMaterial",
    "InvalidStateError",
    "MeetdException",
    "NonceAlreadyUsed",
    "NotAuthorizedError",
    "NotFoundError",
    "ValidationException",
    "VerificationFailed",
    "VerificationReason",
    "WebhookDeliveryError",
    "clear_config_cache",
    "configure_logging",
    "correlation_context",
    "get_config",
    "redact",
]
