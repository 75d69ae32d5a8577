import datetime as dt
from typing import List, Optional

from loguru import logger

from searchcrawler.storage.models import CrawlQueueItem, QueueStatus


DISCOVERED_MESSAGE = "Discovered new domain by crawler, awaiting approval"
SEEDED_MESSAGE = "Seeded manually, awaiting crawl"


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class QueueStore:
    """
    Repository over the ``crawler_queue`` table.

    Every write touches a single row with a single statement (or Tortoise's
    get_or_create), so concurrent runs never need cross-row locking.
    """

    # -------------------------------------------------------
    # Reads
    # -------------------------------------------------------

    async def find_all(self) -> List[CrawlQueueItem]:
        return await CrawlQueueItem.all().order_by("created_at", "url")

    async def find_by_url(self, url: str) -> Optional[CrawlQueueItem]:
        return await CrawlQueueItem.get_or_none(url=url)

    async def find_by_status(self, status: QueueStatus) -> List[CrawlQueueItem]:
        return await CrawlQueueItem.filter(status=status).order_by("created_at", "url")

    async def count_by_status(self, status: QueueStatus) -> int:
        return await CrawlQueueItem.filter(status=status).count()

    # -------------------------------------------------------
    # Writes
    # -------------------------------------------------------

    async def save(self, item: CrawlQueueItem) -> CrawlQueueItem:
        """Upsert ``item`` keyed by its url; ``created_at`` is never overwritten."""
        saved, created = await CrawlQueueItem.update_or_create(
            url=item.url,
            defaults={
                "status": item.status,
                "last_message": item.last_message,
                "last_crawled_at": item.last_crawled_at,
                "found_on_domain": item.found_on_domain,
            },
        )
        logger.debug(f"{'Inserted' if created else 'Updated'} queue item {saved}")
        return saved

    async def update_status(
        self,
        url: str,
        status: QueueStatus,
        message: str,
        *,
        touch: bool = True,
    ) -> bool:
        """
        Set status and message of the row for ``url``. A missing row is a no-op
        and returns False.
        """
        values = {"status": status, "last_message": message}
        if touch:
            values["last_crawled_at"] = _now()

        updated = await CrawlQueueItem.filter(url=url).update(**values)
        if not updated:
            logger.debug(f"No queue item for {url}; status {status.value} not recorded")
        return bool(updated)

    async def ensure_discovered(self, url: str, found_on: str) -> bool:
        """Create a STOPPED row for a newly seen root domain. True if it was created."""
        _, created = await CrawlQueueItem.get_or_create(
            url=url,
            defaults={
                "status": QueueStatus.STOPPED,
                "last_message": DISCOVERED_MESSAGE,
                "found_on_domain": found_on,
            },
        )
        if created:
            logger.info(f"Discovered new domain {url} on {found_on}, awaiting approval")
        return created

    async def seed(self, url: str) -> CrawlQueueItem:
        """
        Make ``url`` crawlable: insert it as PENDING, or approve an existing
        STOPPED row. Rows in any other state are left as they are.
        """
        item, created = await CrawlQueueItem.get_or_create(
            url=url,
            defaults={"status": QueueStatus.PENDING, "last_message": SEEDED_MESSAGE},
        )
        if created:
            logger.info(f"Added seed URL to queue: {url}")
            return item

        if item.status == QueueStatus.STOPPED:
            await CrawlQueueItem.filter(url=url, status=QueueStatus.STOPPED).update(
                status=QueueStatus.PENDING,
                last_message=SEEDED_MESSAGE,
            )
            logger.info(f"Approved queue item for crawling: {url}")
            item = await CrawlQueueItem.get(url=url)
        return item

    async def requeue_in_progress(self, message: str) -> List[str]:
        """Move every IN_PROGRESS row back to PENDING; returns the urls moved."""
        urls = await CrawlQueueItem.filter(status=QueueStatus.IN_PROGRESS).values_list(
            "url", flat=True
        )
        requeued: List[str] = []
        for url in urls:
            updated = await CrawlQueueItem.filter(
                url=url, status=QueueStatus.IN_PROGRESS
            ).update(
                status=QueueStatus.PENDING,
                last_message=message,
                last_crawled_at=_now(),
            )
            if updated:
                requeued.append(url)
        return requeued
