"""Webhook events, signed delivery and dispatch."""

from .client import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    WebhookClient,
    compute_signature,
    verify_signature,
)
from .dispatcher import WebhookDispatcher
from .events import WebhookEvent, WebhookEventData, WebhookEventType

__all__ = [
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "WebhookClient",
    "WebhookDispatcher",
    "WebhookEvent",
    "WebhookEventData",
    "WebhookEventType",
    "compute_signature",
    "verify_signature",
]
