import threading
from enum import Enum
from typing import List

from loguru import logger


SHUTDOWN_MESSAGE = "Application was shutdown"


class StopState(str, Enum):
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class StopSignal:
    """
    Process-wide, one-way stop flag (RUNNING -> STOPPING).

    Built once and handed to every component that has to observe it. Safe to
    set from signal handlers or other threads.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def request_stop(self) -> bool:
        """Flip to STOPPING. Returns False if a stop had already been requested."""
        if self._event.is_set():
            return False
        self._event.set()
        logger.info("Crawler shutdown requested. Running crawls will stop as soon as possible.")
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def state(self) -> StopState:
        return StopState.STOPPING if self._event.is_set() else StopState.RUNNING


class ShutdownCoordinator:
    """
    Runs the process exit sequence once: stop, drain the worker pool and
    put interrupted queue items back to PENDING.
    """

    def __init__(self, stop: StopSignal, pool, queue_store, grace_seconds: float = 30.0):
        self.stop = stop
        self.pool = pool
        self.queue_store = queue_store
        self.grace_seconds = grace_seconds
        self._completed = False

    def request_stop(self) -> None:
        self.stop.request_stop()

    async def shutdown(self) -> List[str]:
        if self._completed:
            return []
        self._completed = True

        logger.info("Application is shutting down, stopping all crawlers...")
        self.stop.request_stop()
        await self.pool.shutdown(self.grace_seconds)

        requeued = await self.queue_store.requeue_in_progress(SHUTDOWN_MESSAGE)
        for url in requeued:
            logger.info(f"Requeued interrupted crawl for {url}")
        logger.info(f"Shutdown complete; {len(requeued)} queue item(s) returned to PENDING")
        return requeued
