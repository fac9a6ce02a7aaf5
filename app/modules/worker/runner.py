import asyncio
import logging
from typing import Optional

from app.core.db import Database

logger = logging.getLogger(__name__)

class ExpirySweeper:
    """Periodically deletes expired listings along with their payment records."""

    def __init__(self, database: Database, interval_seconds: float):
        self.database = database
        self.interval_seconds = interval_seconds
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Starts the sweep loop. A non-positive interval disables it."""
        if self.is_running or self.interval_seconds <= 0:
            return
        self.is_running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[Sweeper] Started, interval {self.interval_seconds}s.")

    async def stop(self):
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[Sweeper] Stopped.")

    async def sweep_once(self) -> int:
        from app.modules.content.service import sweep_expired_listings

        async with self.database.session() as db:
            return await sweep_expired_listings(db)

    async def _loop(self):
        while self.is_running:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                # Keep sweeping; a bad cycle must not stop the loop
                logger.error(f"[Sweeper] Sweep failed: {e}", exc_info=True)
