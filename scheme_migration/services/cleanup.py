"""Background sweeper that deletes expired lock and data cache rows."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from scheme_migration.core.config import settings
from scheme_migration.core.database import get_db_context
from scheme_migration.core.exceptions import StoreUnavailable
from scheme_migration.repositories import DataCacheRepository, LockCacheRepository

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically purge records past their ``expire_at``.

    Reads already ignore expired rows; the sweep only keeps the tables small.
    """

    def __init__(
        self,
        interval_seconds: float,
        session_factory: Callable[[], ContextManager[Session]] = get_db_context,
    ) -> None:
        self.interval_seconds = interval_seconds
        self._session_factory = session_factory
        self._task: Optional[asyncio.Task[None]] = None
        self._is_running = False

    async def start(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("Expiry sweeper disabled")
            return
        if self._is_running:
            logger.debug("Expiry sweeper already running")
            return
        self._is_running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Expiry sweeper started", extra={"interval": self.interval_seconds})

    async def stop(self) -> None:
        self._is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Expiry sweeper stopped")

    def sweep(self) -> dict[str, int]:
        """Purge expired rows from both stores and return the counts removed."""

        with self._session_factory() as db:
            locks_removed = LockCacheRepository(db).purge_expired()
            data_removed = DataCacheRepository(db).purge_expired()
        stats = {"locks_removed": locks_removed, "data_removed": data_removed}
        if locks_removed or data_removed:
            logger.info("Expired cache records purged", extra=stats)
        return stats

    async def _sweep_loop(self) -> None:
        while self._is_running:
            try:
                await asyncio.sleep(self.interval_seconds)
                await asyncio.to_thread(self.sweep)
            except asyncio.CancelledError:  # pragma: no cover - shutdown
                break
            except StoreUnavailable:
                logger.exception("Expiry sweep failed; will retry next interval")


expiry_sweeper = ExpirySweeper(settings.expiry_sweep_interval_seconds)
