# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Periodic housekeeping: proposal expiry and nonce purge."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from ..core.config import CoreSettings, get_config
from ..core.logging import correlation_context
from ..core.temporal import utcnow
from .proposals import ProposalService

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceStats:
    expired: int = 0
    nonces_purged: int = 0


class MaintenanceLoop:
    """Runs the expiry sweep and nonce purge on a fixed interval."""

    def __init__(self, service: ProposalService, config: CoreSettings | None = None):
        config = config or get_config()
        self._service = service
        self._interval = config.sweep_interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    def run_once(self, now: datetime | None = None) -> MaintenanceStats:
        """Run one sweep and one purge."""
        now = now or utcnow()
        stats = MaintenanceStats(
            expired=self._service.expire_sweep(now),
            nonces_purged=self._service.ledger.purge_expired(now),
        )
        if stats.expired or stats.nonces_purged:
            logger.info(f"Maintenance: expired {stats.expired} proposals, purged {stats.nonces_purged} nonces")
        return stats

    async def start(self):
        """Start the maintenance loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Maintenance loop started")

    async def stop(self):
        """Stop the maintenance loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Maintenance loop stopped")

    async def _loop(self):
        while self._running:
            with correlation_context():
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Error in maintenance loop")

            await asyncio.sleep(self._interval)
