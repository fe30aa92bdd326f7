"""
Expiry reclaimer: background sweep that returns overdue holds to the pool.

One sweep runs when the reclaimer starts (holds may have expired while the
process was down), then one every `interval_seconds`. Each sweep is a single
predicate update (`reserved_until < now`), so several processes sweeping at
once is harmless.

A failed sweep is logged and dropped; the next tick is the retry. Nothing a
sweep does ever reaches a reserve or release caller.
"""

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from seatkeeper.core.logging import get_logger
from seatkeeper.core.metrics import record_sweep
from seatkeeper.db.base import utcnow
from seatkeeper.services.interfaces.registry import SeatRegistry

logger = get_logger(__name__)


class ExpiryReclaimer:

    def __init__(
        self,
        registry: SeatRegistry,
        interval_seconds: float = 300.0,
        clock: Callable[[], datetime] = utcnow,
        on_reclaimed: Optional[Callable[[int], Awaitable[None]]] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.on_reclaimed = on_reclaimed
        self._task: Optional[asyncio.Task] = None
        self._starting = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> Optional[int]:
        """
        Reclaim every hold whose deadline has passed.

        Returns:
            Number of seats reclaimed, or None if the sweep failed
        """
        now = self.clock()
        try:
            count = await self.registry.bulk_reclaim(now)
        except Exception as e:
            record_sweep(None)
            logger.error("reclaim_sweep_failed", error=str(e), error_type=type(e).__name__)
            return None

        record_sweep(count, finished_at=time.time())
        if count:
            logger.info("expired_holds_reclaimed", count=count, now=now.isoformat())
            if self.on_reclaimed is not None:
                try:
                    await self.on_reclaimed(count)
                except Exception as e:
                    logger.error("reclaim_callback_failed", error=str(e))
        else:
            logger.debug("reclaim_sweep_idle", now=now.isoformat())
        return count

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep_once()

    async def start(self, sweep_immediately: bool = True) -> None:
        # Claimed before the eager sweep so an overlapping start is a no-op
        if self.running or self._starting:
            return
        self._starting = True
        try:
            if sweep_immediately:
                await self.sweep_once()
            self._task = asyncio.create_task(self._run(), name="seat-expiry-reclaimer")
        finally:
            self._starting = False
        logger.info("reclaimer_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("reclaimer_stopped")
