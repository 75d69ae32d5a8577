from loguru import logger

from searchcrawler.storage.models import CrawlerRestrictedUrl


class RestrictedUrlLog:
    """Append-only record of URLs robots.txt told us not to fetch."""

    async def append(self, url: str, user_agent: str, reason: str) -> CrawlerRestrictedUrl:
        record = CrawlerRestrictedUrl(url=url, user_agent=user_agent, reason=reason)
        await record.save()
        logger.debug(f"Recorded restricted URL {url}: {reason}")
        return record
