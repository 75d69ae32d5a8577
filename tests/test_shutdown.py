import asyncio

import pytest

from searchcrawler.engine import CrawlEngine
from searchcrawler.fetcher import PageFetcher
from searchcrawler.pool import CrawlerPool
from searchcrawler.shutdown import SHUTDOWN_MESSAGE, ShutdownCoordinator, StopSignal, StopState
from searchcrawler.storage.models import CrawlQueueItem, QueueStatus
from searchcrawler.storage.queue_store import QueueStore
from searchcrawler.storage.restricted_url_log import RestrictedUrlLog
from searchcrawler.utils.robots import RobotsCache


class IdleEngine:
    async def run_crawl(self, url):
        return None


def test_stop_signal_is_one_way_and_idempotent():
    stop = StopSignal()
    assert stop.state == StopState.RUNNING
    assert not stop.is_set()

    assert stop.request_stop() is True
    assert stop.request_stop() is False

    assert stop.is_set()
    assert stop.state == StopState.STOPPING


@pytest.mark.asyncio
async def test_shutdown_requeues_exactly_the_in_progress_items(db):
    store = QueueStore()
    in_progress = ["https://a.example/", "https://b.example/", "https://c.example/"]
    for url in in_progress:
        await store.save(CrawlQueueItem(url=url, status=QueueStatus.IN_PROGRESS))
    await store.save(CrawlQueueItem(url="https://done.example/", status=QueueStatus.COMPLETED))
    await store.save(CrawlQueueItem(url="https://new.example", status=QueueStatus.STOPPED))

    stop = StopSignal()
    pool = CrawlerPool(IdleEngine(), stop, min_workers=1, max_workers=1)
    coordinator = ShutdownCoordinator(stop, pool, store, grace_seconds=1)

    requeued = await coordinator.shutdown()

    assert stop.is_set()
    assert sorted(requeued) == in_progress
    pending = await store.find_by_status(QueueStatus.PENDING)
    assert sorted(item.url for item in pending) == in_progress
    assert all(item.last_message == SHUTDOWN_MESSAGE for item in pending)
    assert (await store.find_by_url("https://done.example/")).status == QueueStatus.COMPLETED
    assert (await store.find_by_url("https://new.example")).status == QueueStatus.STOPPED

    # the hook only runs once
    await store.update_status("https://a.example/", QueueStatus.IN_PROGRESS, "again")
    assert await coordinator.shutdown() == []


@pytest.mark.asyncio
async def test_stop_mid_crawl_then_shutdown_returns_item_to_pending(db, site, http_client, make_page):
    root = "https://a.example/"
    site.pages = {root: make_page("/next")}
    store = QueueStore()
    await store.seed(root)

    stop = StopSignal()
    engine = CrawlEngine(
        store,
        RestrictedUrlLog(),
        RobotsCache(http_client, "TestBot"),
        PageFetcher(http_client, "TestBot"),
        stop,
        politeness_delay=0.0,
    )
    pool = CrawlerPool(engine, stop, min_workers=1, max_workers=1)
    coordinator = ShutdownCoordinator(stop, pool, store, grace_seconds=2)

    def stop_on_root(url):
        if url == root:
            coordinator.request_stop()

    site.on_request = stop_on_root

    pool.dispatch(root)
    await asyncio.sleep(0)
    assert await pool.wait_idle(2)
    assert (await store.find_by_url(root)).status == QueueStatus.IN_PROGRESS

    requeued = await coordinator.shutdown()

    item = await store.find_by_url(root)
    assert requeued == [root]
    assert item.status == QueueStatus.PENDING
    assert item.last_message == SHUTDOWN_MESSAGE
    assert site.page_requests() == [root]
