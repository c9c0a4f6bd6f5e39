"""Fire-and-forget webhook dispatch.

``dispatch`` schedules a delivery as its own asyncio task and returns
immediately; the operation that triggered the event never waits on the
receiver. A semaphore bounds how many deliveries run at once, and events
arriving while ``max_pending`` deliveries are already queued are dropped
with a warning. Failures are logged and not retried.
"""

from __future__ import annotations

import asyncio
import logging

from ..core.config import CoreSettings, get_config
from .client import WebhookClient
from .events import WebhookEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 16
DEFAULT_MAX_PENDING = 1000


class WebhookDispatcher:
    """Runs webhook deliveries as detached, bounded tasks.

    Must be used from within a running event loop.
    """

    def __init__(
        self,
        client: WebhookClient | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        if max_pending <= 0:
            raise ValueError("max_pending must be positive")
        self._client = client or WebhookClient()
        self._max_concurrency = max_concurrency
        self._max_pending = max_pending
        self._semaphore: asyncio.Semaphore | None = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: CoreSettings | None = None) -> WebhookDispatcher:
        """Dispatcher with timeout and limits taken from settings."""
        config = config or get_config()
        return cls(
            WebhookClient.from_config(config),
            max_concurrency=config.webhook_max_concurrency,
            max_pending=config.webhook_max_pending,
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, url: str, secret: str, event: WebhookEvent) -> asyncio.Task | None:
        """Schedule delivery of ``event`` and return without waiting.

        Returns None, without scheduling anything, when the backlog is full.
        """
        if len(self._tasks) >= self._max_pending:
            logger.warning(
                f"Webhook backlog full ({self._max_pending} pending), dropping {event.event.value} for {url}"
            )
            return None
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        task = asyncio.create_task(self._deliver(self._semaphore, url, secret, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(
        self, semaphore: asyncio.Semaphore, url: str, secret: str, event: WebhookEvent
    ) -> None:
        async with semaphore:
            try:
                await self._client.deliver(url, secret, event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Webhook delivery of {event.event.value} to {url} failed: {e}")

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight deliveries, best effort."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info(f"Webhook dispatcher cancelled {len(tasks)} in-flight deliveries")
