import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from loguru import logger

from searchcrawler.monitoring.metrics import FETCH_FAILURES, PAGES_FETCHED, REQUEST_LATENCY
from searchcrawler.parsing.html_extractor import extract_links, extract_title


MAX_DOWNLOAD_BYTES = int(os.getenv("MAX_DOWNLOAD_BYTES", 2_000_000))
MAX_REDIRECTS = 10


@dataclass
class Document:
    url: str
    title: str = ""
    links: List[str] = field(default_factory=list)


@dataclass
class FetchResult:
    status_code: int
    content_type: str
    document: Optional[Document] = None
    redirect_count: int = 0
    skip_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.document is not None and 200 <= self.status_code < 300


def categorize_error(exc: BaseException) -> str:
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "network_timeout"
    if isinstance(exc, httpx.TransportError):
        return "connection_error"
    if isinstance(exc, httpx.HTTPError):
        return "http_error"
    if isinstance(exc, httpx.InvalidURL):
        return "invalid_url"
    return "unexpected"


class PageFetcher:
    """
    Turns a URL into a parsed ``Document``.

    Responses that cannot be crawled (non-2xx, non-HTML, oversized, redirect
    loops) come back as a ``FetchResult`` without a document. Transport
    problems are raised as ``httpx.HTTPError``.
    """

    def __init__(self, client: httpx.AsyncClient, user_agent: str):
        self.client = client
        self.user_agent = user_agent

    def _skip(self, resp: httpx.Response, content_type: str, reason: str) -> FetchResult:
        FETCH_FAILURES.labels(reason=reason).inc()
        return FetchResult(
            status_code=resp.status_code,
            content_type=content_type,
            redirect_count=len(resp.history),
            skip_reason=reason,
        )

    async def fetch(self, url: str) -> FetchResult:
        start = time.perf_counter()
        try:
            resp = await self.client.get(
                url,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": (
                        "text/html,application/xhtml+xml,application/xml;q=0.9,"
                        "*/*;q=0.8"
                    ),
                },
            )
        finally:
            REQUEST_LATENCY.observe(time.perf_counter() - start)

        content_type = (resp.headers.get("Content-Type") or "").lower()

        if len(resp.history) > MAX_REDIRECTS:
            return self._skip(resp, content_type, "redirect_loop")

        if not 200 <= resp.status_code < 300:
            logger.warning(f"Failed to fetch {url}: status code {resp.status_code}")
            return self._skip(resp, content_type, "http_status")

        body = resp.content or b""
        if len(body) > MAX_DOWNLOAD_BYTES:
            return self._skip(resp, content_type, "body_too_large")

        if "text/html" not in content_type:
            return self._skip(resp, content_type, "non_html_content")

        html = resp.text or ""
        final_url = str(resp.url)
        document = Document(
            url=final_url,
            title=extract_title(html),
            links=extract_links(final_url, html),
        )

        PAGES_FETCHED.inc()
        logger.info(f"Successfully fetched {url} | {document.title}")

        return FetchResult(
            status_code=resp.status_code,
            content_type=content_type,
            document=document,
            redirect_count=len(resp.history),
        )
