import asyncio
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from loguru import logger

from searchcrawler.monitoring.metrics import ACTIVE_RUNS, DISPATCH_REJECTED
from searchcrawler.shutdown import StopSignal


class DispatchRejected(RuntimeError):
    """The pool could not accept another crawl run (saturated or stopping)."""


@dataclass(frozen=True)
class RunInfo:
    url: str
    start_time: datetime


class RunRegistry:
    """Directory of crawl runs currently executing, keyed by run id."""

    def __init__(self) -> None:
        self._runs: Dict[str, RunInfo] = {}
        self._ids = itertools.count(1)

    def register(self, url: str) -> str:
        run_id = f"Crawler-{url}-{next(self._ids)}"
        self._runs[run_id] = RunInfo(url=url, start_time=datetime.now(timezone.utc))
        return run_id

    def deregister(self, run_id: str) -> None:
        self._runs.pop(run_id, None)

    def snapshot(self) -> Dict[str, RunInfo]:
        return dict(self._runs)

    def __len__(self) -> int:
        return len(self._runs)


class CrawlerPool:
    """
    Bounded pool of worker tasks running ``engine.run_crawl``.

    The first ``min_workers`` dispatches each start a long-lived worker.
    After that, runs wait in a backlog of ``backlog_capacity``; once the
    backlog is full, extra workers (up to ``max_workers``) are started and
    retire as soon as the backlog is empty. Anything beyond that is rejected.
    """

    def __init__(
        self,
        engine,
        stop: StopSignal,
        *,
        min_workers: int = 5,
        max_workers: int = 10,
        backlog_capacity: int = 50,
    ):
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.engine = engine
        self.stop = stop
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.backlog_capacity = backlog_capacity
        self.registry = RunRegistry()

        self._backlog: asyncio.Queue[str] = asyncio.Queue(maxsize=backlog_capacity)
        self._workers: Set[asyncio.Task] = set()
        self._core_workers = 0
        self._idle = asyncio.Event()
        self._idle.set()

    # --------------------------
    #  Submission
    # --------------------------
    def dispatch(self, root_url: str) -> None:
        if self.stop.is_set():
            DISPATCH_REJECTED.inc()
            raise DispatchRejected(f"Shutdown in progress; not starting crawl of {root_url}")

        if self._core_workers < self.min_workers:
            self._spawn(root_url, core=True)
            return

        try:
            self._backlog.put_nowait(root_url)
            logger.debug(f"Crawl of {root_url} queued (backlog={self._backlog.qsize()})")
            return
        except asyncio.QueueFull:
            pass

        if len(self._workers) < self.max_workers:
            self._spawn(root_url, core=False)
            return

        DISPATCH_REJECTED.inc()
        raise DispatchRejected(
            f"Worker pool saturated ({len(self._workers)} workers, "
            f"{self._backlog.qsize()} queued); rejected crawl of {root_url}"
        )

    def _spawn(self, first_url: str, *, core: bool) -> None:
        if core:
            self._core_workers += 1
        task = asyncio.create_task(self._worker(first_url, core))
        self._workers.add(task)
        task.add_done_callback(lambda t: self._on_worker_done(t, core))

    def _on_worker_done(self, task: asyncio.Task, core: bool) -> None:
        self._workers.discard(task)
        if core:
            self._core_workers -= 1

    # --------------------------
    #  Workers
    # --------------------------
    async def _worker(self, first_url: str, core: bool) -> None:
        url: Optional[str] = first_url
        while url is not None:
            await self._execute(url)
            if self.stop.is_set():
                return
            if core:
                url = await self._backlog.get()
            else:
                try:
                    url = self._backlog.get_nowait()
                except asyncio.QueueEmpty:
                    url = None

    async def _execute(self, root_url: str) -> None:
        run_id = self.registry.register(root_url)
        self._idle.clear()
        ACTIVE_RUNS.inc()
        try:
            await self.engine.run_crawl(root_url)
        except asyncio.CancelledError:
            raise
        except Exception:
            # run_crawl contains its own failures; this keeps a worker alive if it doesn't
            logger.exception(f"Crawl run {run_id} raised")
        finally:
            self.registry.deregister(run_id)
            ACTIVE_RUNS.dec()
            if not len(self.registry):
                self._idle.set()

    # --------------------------
    #  Introspection / shutdown
    # --------------------------
    @property
    def active_count(self) -> int:
        return len(self.registry)

    @property
    def pool_size(self) -> int:
        return len(self._workers)

    @property
    def backlog_size(self) -> int:
        return self._backlog.qsize()

    def status(self) -> Dict[str, Any]:
        crawlers: List[Dict[str, Any]] = [
            {
                "runId": run_id,
                "url": info.url,
                "startTime": info.start_time.isoformat(),
            }
            for run_id, info in self.registry.snapshot().items()
        ]
        return {
            "activeCount": self.active_count,
            "poolSize": self.pool_size,
            "corePoolSize": self.min_workers,
            "maxPoolSize": self.max_workers,
            "queueSize": self.backlog_size,
            "queueCapacity": self.backlog_capacity,
            "activeCrawlers": crawlers,
        }

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until no run is executing. False if ``timeout`` expired first."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def shutdown(self, grace_seconds: float = 30.0) -> None:
        if not await self.wait_idle(grace_seconds):
            logger.warning(
                f"{self.active_count} crawl run(s) still active after {grace_seconds}s; cancelling"
            )

        workers = list(self._workers)
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        logger.info("Crawler worker pool stopped.")
