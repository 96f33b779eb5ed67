"""
Session Cleanup Service - drops expired OTP and session records from the store
"""
import asyncio
import logging
from datetime import datetime, timezone

from .store import KeyValueStore

logger = logging.getLogger(__name__)


class SessionCleanupService:
    """Background sweep so abandoned records do not pile up in memory"""

    def __init__(self, store: KeyValueStore, cleanup_interval: int = 300):
        self.store = store
        self.is_running = False
        self.cleanup_interval = cleanup_interval
        self._task = None

    async def start(self):
        """Start the cleanup loop as a background task"""
        if self.is_running:
            logger.warning("Session cleanup service already running")
            return

        self.is_running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Session Cleanup Service: Started")

    async def _run(self):
        while self.is_running:
            try:
                self.cleanup_now()
            except Exception as e:
                logger.error(f"Error in session cleanup loop: {e}")
            await asyncio.sleep(self.cleanup_interval)

    async def stop(self):
        """Stop the cleanup service"""
        self.is_running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Session Cleanup Service: Stopped")

    def cleanup_now(self) -> int:
        """Sweep once and return how many records were dropped"""
        removed = self.store.sweep_expired(datetime.now(timezone.utc))
        if removed:
            logger.info(f"Cleaned up {removed} expired session/OTP records")
        else:
            logger.debug("No expired records to clean")
        return removed
