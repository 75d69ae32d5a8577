import asyncio

from loguru import logger

from searchcrawler.pool import CrawlerPool, DispatchRejected
from searchcrawler.shutdown import StopSignal
from searchcrawler.storage.models import QueueStatus
from searchcrawler.storage.queue_store import QueueStore


class Scheduler:
    """Periodically hands every PENDING queue item to the worker pool."""

    def __init__(
        self,
        queue: QueueStore,
        pool: CrawlerPool,
        stop: StopSignal,
        interval_seconds: float = 60.0,
    ):
        self.queue = queue
        self.pool = pool
        self.stop = stop
        self.interval_seconds = interval_seconds

    async def scheduled_tick(self) -> int:
        """Dispatch all PENDING items; returns how many the pool accepted."""
        if self.stop.is_set():
            return 0

        pending = await self.queue.find_by_status(QueueStatus.PENDING)
        dispatched = 0
        for item in pending:
            if self.stop.is_set():
                break
            logger.info(f"Scheduled crawl triggered for {item.url}")
            try:
                self.pool.dispatch(item.url)
            except DispatchRejected as e:
                logger.warning(str(e))
                continue
            dispatched += 1
        return dispatched

    async def run(self) -> None:
        logger.info("Scheduler started...")
        while not self.stop.is_set():
            try:
                await self.scheduled_tick()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}")
            await asyncio.sleep(self.interval_seconds)
        logger.info("Scheduler stopped.")
