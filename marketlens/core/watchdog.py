import asyncio
import time
from datetime import datetime
from typing import List, Optional
from marketlens.config import settings
from marketlens.core.logger import logger

class FeedWatchdog:
    """
    Periodic health check for a live feed: flags symbols that stopped ticking,
    schedules resubscription while the market is open and drops pending
    retries once it closes. Also expires gap alert toasts.
    """

    def __init__(self, feed, check_interval: Optional[float] = None, stale_after: Optional[float] = None):
        self.feed = feed
        self.check_interval = settings.HEALTH_CHECK_INTERVAL if check_interval is None else check_interval
        self.stale_after = settings.STALE_AFTER_SECONDS if stale_after is None else stale_after
        self.last_check = time.time()
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        self.is_running = True
        self._task = asyncio.create_task(self._monitor())
        logger.info("[WATCHDOG] Started.")

    async def _monitor(self):
        while self.is_running:
            start_check = time.time()
            await asyncio.sleep(self.check_interval)
            end_check = time.time()

            # If sleep(interval) took much longer, the loop is lagging
            lag = (end_check - start_check) - self.check_interval
            if lag > 0.5:
                logger.warning(f"[WATCHDOG] SYSTEM LAG DETECTED: {lag*1000:.2f}ms")

            try:
                self.check_health()
            except Exception as e:
                logger.error(f"[WATCHDOG] Health check error: {e}")

            self.last_check = end_check

    def check_health(self, now: Optional[datetime] = None) -> List[str]:
        """Returns the symbols found stale on this pass"""
        feed = self.feed
        if feed.alerts is not None:
            feed.alerts.expire()

        if not feed.is_connected:
            return []

        stale = feed.status.get_stale_connections(self.stale_after, now=now)
        if stale:
            logger.warning(f"[WATCHDOG] Stale symbols: {stale}")
        for symbol in stale:
            feed.status.update_symbol_status(symbol, "error", "No data received (connection may be stale)")
            feed.schedule_retry(symbol)

        if not feed.market_hours.is_market_open(now) and feed.pending_retries:
            logger.info("[WATCHDOG] Market closed, clearing pending resubscriptions")
            feed.cancel_retries()
            feed.recovery.clear_all_retries()

        return stale

    def stop(self):
        self.is_running = False
        if self._task:
            self._task.cancel()
