# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Local accounts and webhook registration."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from urllib.parse import urlparse

from ..core.exceptions import ValidationException, WebhookDeliveryError
from ..core.temporal import to_unix, utcnow
from ..crypto.signing import Keypair, generate_webhook_secret
from ..models import User, Visibility
from ..storage.base import ProposalStore
from ..webhook.client import WebhookClient
from ..webhook.events import WebhookEvent, WebhookEventData, WebhookEventType

logger = logging.getLogger(__name__)

TEST_PROPOSAL_ID = "test_proposal"
TEST_SENDER = "test@meetd.example.com"


def register_user(
    store: ProposalStore,
    email: str,
    google_refresh_token: str | None = None,
    visibility: Visibility = Visibility.BUSY_ONLY,
) -> User:
    """Create a local user with a fresh signing keypair.

    Raises:
        ValidationException: If the email is empty.
        ConflictError: If the email is already registered.
    """
    if not email or "@" not in email:
        raise ValidationException("A valid email is required", field="email", value=email)

    keypair = Keypair.generate()
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        public_key=keypair.public_key_base64(),
        private_key=keypair.private_key_base64(),
        google_refresh_token=google_refresh_token,
        visibility=visibility,
        created_at=to_unix(utcnow()),
    )
    store.create_user(user)
    logger.info(f"Registered user {user.id} ({email})")
    return user


def _validate_webhook_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationException("Invalid URL: expected an http(s) URL", field="url", value=url)


def register_webhook(store: ProposalStore, user: User, url: str) -> str:
    """Register or replace ``user``'s webhook and return the new secret.

    A new secret is generated on every registration.

    Raises:
        ValidationException: If ``url`` is not an absolute http(s) URL.
    """
    _validate_webhook_url(url)
    secret = generate_webhook_secret()
    store.update_user_webhook(user.id, url, secret)
    user.webhook_url = url
    user.webhook_secret = secret
    logger.info(f"Registered webhook for user {user.id}: {url}")
    return secret


def remove_webhook(store: ProposalStore, user: User) -> None:
    store.update_user_webhook(user.id, None, None)
    user.webhook_url = None
    user.webhook_secret = None
    logger.info(f"Removed webhook for user {user.id}")


@dataclass
class WebhookTestResult:
    success: bool
    error: str | None = None


async def send_test_webhook(user: User, client: WebhookClient | None = None) -> WebhookTestResult:
    """Deliver a sample proposal.received event and wait for the outcome.

    Unlike lifecycle webhooks this call awaits delivery so the user can see
    whether their endpoint works.

    Raises:
        ValidationException: If the user has no webhook configured.
    """
    if not user.has_webhook:
        raise ValidationException("No webhook configured", field="webhook_url")

    event = WebhookEvent(
        WebhookEventType.PROPOSAL_RECEIVED,
        WebhookEventData(proposal_id=TEST_PROPOSAL_ID, from_=TEST_SENDER, title="Test Webhook"),
    )
    try:
        await (client or WebhookClient()).deliver(user.webhook_url, user.webhook_secret, event)
    except WebhookDeliveryError as e:
        return WebhookTestResult(success=False, error=e.message)
    return WebhookTestResult(success=True)
