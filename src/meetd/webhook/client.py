# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Signed webhook delivery.

Each POST carries two headers:

- ``X-Meetd-Timestamp``: Unix seconds at send time
- ``X-Meetd-Signature``: hex HMAC-SHA256 of ``"<timestamp>.<body>"`` keyed
  with the receiver's webhook secret

Receivers verify with ``verify_signature`` and reject requests whose
timestamp is more than five minutes from their own clock.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

import aiohttp

from ..core.config import CoreSettings, get_config
from ..core.exceptions import WebhookDeliveryError
from .events import WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Meetd-Signature"
TIMESTAMP_HEADER = "X-Meetd-Timestamp"
DEFAULT_TIMEOUT_SECONDS = 10.0


def compute_signature(payload: str, timestamp: int | str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``"<timestamp>.<payload>"``."""
    message = f"{timestamp}.{payload}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_signature(
    payload: str,
    timestamp: str,
    signature: str,
    secret: str,
    now: int | None = None,
    tolerance_seconds: int | None = None,
) -> bool:
    """Check a received webhook's signature and freshness.

    Returns False for a non-integer timestamp, a timestamp more than
    ``tolerance_seconds`` away from ``now``, or a signature mismatch.
    The tolerance defaults to ``MEETD_WEBHOOK_TOLERANCE_SECONDS``.
    """
    if tolerance_seconds is None:
        tolerance_seconds = get_config().webhook_tolerance_seconds

    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return False

    current = int(time.time()) if now is None else now
    if abs(current - ts) > tolerance_seconds:
        return False

    expected = compute_signature(payload, ts, secret)
    return hmac.compare_digest(expected, signature)


class WebhookClient:
    """Sends signed webhook events over HTTP.

    Args:
        timeout_seconds: Total timeout per POST.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @classmethod
    def from_config(cls, config: CoreSettings | None = None) -> WebhookClient:
        config = config or get_config()
        return cls(timeout_seconds=config.webhook_timeout_seconds)

    @staticmethod
    def sign(payload: str, timestamp: int | str, secret: str) -> str:
        return compute_signature(payload, timestamp, secret)

    async def deliver(self, url: str, secret: str, event: WebhookEvent) -> None:
        """POST ``event`` to ``url``.

        Raises:
            WebhookDeliveryError: On a connection failure, timeout or
                non-2xx response.
        """
        payload = event.to_json()
        timestamp = int(time.time())
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: self.sign(payload, timestamp, secret),
            TIMESTAMP_HEADER: str(timestamp),
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    data=payload,
                    headers=headers,
                    timeout=self._timeout,
                ) as response:
                    if not 200 <= response.status < 300:
                        body = await response.text()
                        raise WebhookDeliveryError(
                            f"Webhook returned {response.status}: {body[:500]}",
                            status=response.status,
                            url=url,
                        )
        except aiohttp.ClientError as e:
            raise WebhookDeliveryError(f"Webhook request failed: {e}", url=url) from e
        except TimeoutError as e:
            raise WebhookDeliveryError("Webhook request timed out", url=url) from e

        logger.debug(f"Delivered {event.event.value} to {url}")
