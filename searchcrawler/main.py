import asyncio
import signal

import httpx
from loguru import logger

# -------------------------------
# UVLOOP (used when installed)
# -------------------------------
try:
    import uvloop
    uvloop.install()
except ImportError:
    logger.warning("uvloop not available, using default asyncio loop.")

# -------------------------------
# INTERNAL IMPORTS
# -------------------------------
from searchcrawler.engine import CrawlEngine
from searchcrawler.fetcher import PageFetcher
from searchcrawler.monitoring.http_server import start_http_server
from searchcrawler.monitoring.metrics import QUEUE_PENDING
from searchcrawler.pool import CrawlerPool
from searchcrawler.scheduler import Scheduler
from searchcrawler.shutdown import ShutdownCoordinator, StopSignal
from searchcrawler.storage.db_init import close_db, init_db
from searchcrawler.storage.models import QueueStatus
from searchcrawler.storage.queue_store import QueueStore
from searchcrawler.storage.restricted_url_log import RestrictedUrlLog
from searchcrawler.utils.config_loader import load_config
from searchcrawler.utils.logger import setup_logger
from searchcrawler.utils.robots import RobotsCache


# -------------------------------
# QUEUE METRIC MONITOR TASK
# -------------------------------
async def monitor_queue_size(queue: QueueStore):
    while True:
        try:
            count = await queue.count_by_status(QueueStatus.PENDING)
            QUEUE_PENDING.set(count)
        except Exception as e:
            logger.error(f"Queue monitor error: {e}")
        await asyncio.sleep(5)


# -------------------------------
# MAIN APPLICATION
# -------------------------------
async def main() -> None:
    config = load_config()
    setup_logger(config.log_level, config.log_path)

    logger.info("Starting crawler system...")

    await init_db(config.database_url)

    queue = QueueStore()
    restricted_log = RestrictedUrlLog()
    for url in config.seed_urls:
        await queue.seed(url)

    stop = StopSignal()
    timeout = httpx.Timeout(timeout=config.request_timeout)

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        robots = RobotsCache(
            client,
            config.crawler_user_agent,
            timeout=config.robots_fetch_timeout_ms / 1000,
        )
        engine = CrawlEngine(
            queue,
            restricted_log,
            robots,
            PageFetcher(client, config.crawler_user_agent),
            stop,
            max_depth=config.max_crawl_depth,
            politeness_delay=config.politeness_delay_ms / 1000,
            user_agent=config.crawler_user_agent,
        )
        pool = CrawlerPool(
            engine,
            stop,
            min_workers=config.min_workers,
            max_workers=config.max_workers,
            backlog_capacity=config.backlog_capacity,
        )
        scheduler = Scheduler(queue, pool, stop, config.scheduled_delay_ms / 1000)
        coordinator = ShutdownCoordinator(
            stop, pool, queue, grace_seconds=config.shutdown_grace_seconds
        )

        # ---- HTTP server (metrics + read-only API) ----
        http_runner, _ = await start_http_server(queue, pool, port=config.http_port)

        scheduler_task = asyncio.create_task(scheduler.run())
        monitor_task = asyncio.create_task(monitor_queue_size(queue))

        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown_event.set)

        logger.info("Crawler system started successfully.")

        try:
            await shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            coordinator.request_stop()
            scheduler_task.cancel()
            monitor_task.cancel()
            await asyncio.gather(scheduler_task, monitor_task, return_exceptions=True)

            await coordinator.shutdown()

            await http_runner.shutdown()
            await http_runner.cleanup()

    await close_db()


# -------------------------------
# ENTRYPOINT
# -------------------------------
def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
