import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

import httpx
from loguru import logger

from searchcrawler.fetcher import Document, PageFetcher, categorize_error
from searchcrawler.monitoring.metrics import (
    CRAWL_RUNS,
    DOMAINS_DISCOVERED,
    FETCH_FAILURES,
    ROBOTS_BLOCKED,
    SKIPPED_LINKS,
)
from searchcrawler.shutdown import StopSignal
from searchcrawler.storage.models import QueueStatus
from searchcrawler.storage.queue_store import QueueStore
from searchcrawler.storage.restricted_url_log import RestrictedUrlLog
from searchcrawler.utils.config_loader import DEFAULT_USER_AGENT
from searchcrawler.utils.robots import RobotsCache
from searchcrawler.utils.url_utils import InvalidURLError, base_url, is_http_url


RESTRICTED_REASON = "Disallowed by robots.txt"
IN_PROGRESS_MESSAGE = "Crawling in progress"
COMPLETED_MESSAGE = "Crawling completed"


class RunOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ABORTED = "ABORTED"
    BLOCKED = "BLOCKED"


@dataclass
class CrawlRun:
    """State owned by a single run; nothing in here is shared between runs."""
    root_url: str
    visited: Set[str] = field(default_factory=set)
    fetched: List[str] = field(default_factory=list)
    discovered: Set[str] = field(default_factory=set)
    outcome: Optional[RunOutcome] = None


class CrawlEngine:
    """
    Depth-first traversal of one root URL.

    Pages are taken from an explicit stack of ``(url, level)`` pairs, the
    root being level 0. Only links on the same ``scheme://host[:port]`` are
    followed; other root domains are recorded as STOPPED queue items for
    manual approval. The queue row keyed by the root URL is the only row a
    run moves through IN_PROGRESS -> COMPLETED / FAILED.
    """

    def __init__(
        self,
        queue_store: QueueStore,
        restricted_log: RestrictedUrlLog,
        robots: RobotsCache,
        fetcher: PageFetcher,
        stop: StopSignal,
        *,
        max_depth: int = 5,
        politeness_delay: float = 0.5,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.queue_store = queue_store
        self.restricted_log = restricted_log
        self.robots = robots
        self.fetcher = fetcher
        self.stop = stop
        self.max_depth = max_depth
        self.politeness_delay = politeness_delay
        self.user_agent = user_agent

    # --------------------------
    #  Run boundary
    # --------------------------
    async def run_crawl(self, root_url: str) -> CrawlRun:
        run = CrawlRun(root_url=root_url)
        logger.info(f'Starting crawler for "{root_url}" with a max crawl depth of {self.max_depth}')

        try:
            run.outcome = await self._traverse(run)
        except asyncio.CancelledError:
            CRAWL_RUNS.labels(outcome="CANCELLED").inc()
            logger.warning(f"Crawl of {root_url} cancelled")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during crawling {root_url}: {e}")
            run.outcome = RunOutcome.FAILED
            await self._record_failure(root_url, f"Crawling failed: {e}")

        CRAWL_RUNS.labels(outcome=run.outcome.value).inc()
        logger.info(
            f"Crawl of {root_url} finished: {run.outcome.value} "
            f"({len(run.fetched)} page(s) fetched)"
        )
        return run

    async def _record_failure(self, root_url: str, message: str) -> None:
        try:
            await self.queue_store.update_status(root_url, QueueStatus.FAILED, message)
        except Exception:
            logger.exception(f"Could not record failure of {root_url}")

    # --------------------------
    #  Traversal
    # --------------------------
    async def _traverse(self, run: CrawlRun) -> RunOutcome:
        root_url = run.root_url
        stack: List[Tuple[str, int]] = [(root_url, 0)]

        while stack:
            url, level = stack.pop()

            if self.stop.is_set():
                logger.info(f"Shutdown in progress. Exiting crawl for {url}")
                return RunOutcome.ABORTED
            if url in run.visited:
                logger.trace(f"URL already visited: {url}")
                continue
            if level > self.max_depth:
                logger.debug(f"Max crawl depth {self.max_depth} reached for URL: {url}")
                continue

            is_root = url == root_url

            if not await self.robots.is_allowed(url):
                ROBOTS_BLOCKED.inc()
                logger.warning(f"Blocked by robots.txt: {url}")
                await self.restricted_log.append(url, self.user_agent, RESTRICTED_REASON)
                if is_root:
                    return RunOutcome.BLOCKED
                continue

            if is_root:
                await self.queue_store.update_status(
                    url, QueueStatus.IN_PROGRESS, IN_PROGRESS_MESSAGE, touch=False
                )

            if not await self._politeness_delay(run, url):
                return RunOutcome.ABORTED

            run.visited.add(url)
            run.fetched.append(url)
            document, failure = await self._fetch_document(url)

            if document is None:
                if is_root:
                    await self.queue_store.update_status(url, QueueStatus.FAILED, failure)
                    return RunOutcome.FAILED
                logger.warning(f"Not following links of {url}: {failure}")
                continue

            children = await self._enumerate_links(run, url, document, level)
            if children is None:
                return RunOutcome.ABORTED

            # reversed so the first link in the document is crawled first
            stack.extend(reversed(children))

        await self.queue_store.update_status(root_url, QueueStatus.COMPLETED, COMPLETED_MESSAGE)
        return RunOutcome.COMPLETED

    async def _politeness_delay(self, run: CrawlRun, url: str) -> bool:
        try:
            await asyncio.sleep(self.politeness_delay)
        except asyncio.CancelledError:
            logger.error(f"Politeness delay interrupted for {url}")
            await self._record_failure(
                run.root_url, f"Crawling interrupted: politeness delay cancelled for {url}"
            )
            raise

        if self.stop.is_set():
            logger.info(f"Shutdown in progress. Exiting crawl for {url} after politeness delay")
            return False
        return True

    async def _fetch_document(self, url: str) -> Tuple[Optional[Document], str]:
        try:
            result = await self.fetcher.fetch(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            category = categorize_error(e)
            FETCH_FAILURES.labels(reason=category).inc()
            logger.error(f"Error fetching {url}: {category}: {e}")
            return None, f"Crawling failed: {category}: {e}"

        if not result.ok:
            reason = result.skip_reason or "no_document"
            return None, f"Crawling failed: {reason} (status {result.status_code})"

        return result.document, ""

    async def _enumerate_links(
        self,
        run: CrawlRun,
        url: str,
        document: Document,
        level: int,
    ) -> Optional[List[Tuple[str, int]]]:
        """Same-domain links to visit next, or None when a stop was requested."""
        current_base = base_url(url)
        children: List[Tuple[str, int]] = []

        for link in document.links:
            if self.stop.is_set():
                logger.info(f"Shutdown in progress. Exiting crawl for {url} during link processing")
                return None

            if not is_http_url(link):
                SKIPPED_LINKS.labels(reason="non_http").inc()
                logger.trace(f"Skipping non-http(s) URL: {link}")
                continue

            try:
                link_base = base_url(link)
                httpx.URL(link)
            except (InvalidURLError, httpx.InvalidURL) as e:
                SKIPPED_LINKS.labels(reason="invalid_url").inc()
                logger.warning(f"Invalid URL found on {url}: {e}")
                continue

            if link_base != current_base:
                if link_base not in run.discovered:
                    run.discovered.add(link_base)
                    if await self.queue_store.ensure_discovered(link_base, found_on=current_base):
                        DOMAINS_DISCOVERED.inc()
                continue

            if link in run.visited:
                logger.trace(f"Skipping already visited URL: {link}")
                continue

            logger.debug(f"Found new URL: {link}")
            children.append((link, level + 1))

        return children
