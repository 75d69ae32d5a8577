from typing import Dict
from urllib.robotparser import RobotFileParser

import httpx
from loguru import logger

from searchcrawler.monitoring.metrics import ROBOTS_FETCHES
from searchcrawler.utils.url_utils import base_url


def _allow_all() -> RobotFileParser:
    parser = RobotFileParser()
    parser.allow_all = True
    return parser


class RobotsCache:
    """
    Fetch and memoize robots.txt rules per ``scheme://host[:port]``.

    Entries live for the lifetime of the instance; there is no expiry, so a
    changed robots.txt is only picked up after a restart. Every failure to
    obtain or evaluate the rules results in "allowed".
    """

    def __init__(self, client, user_agent: str, timeout: float = 5.0):
        self.client = client
        self.user_agent = user_agent
        self.timeout = timeout
        self._rules: Dict[str, RobotFileParser] = {}

    def __contains__(self, host: str) -> bool:
        return host in self._rules

    # -------------------------------------------------------
    async def is_allowed(self, url: str) -> bool:
        try:
            host = base_url(url)
            parser = self._rules.get(host)
            if parser is None:
                parser = await self._fetch_rules(host)
                # two runs racing on the same host both fetch; first insert wins
                parser = self._rules.setdefault(host, parser)
            return parser.can_fetch(self.user_agent, url)
        except Exception as exc:
            logger.error(f"Error checking robots.txt for {url}: {exc}")
            return True

    # -------------------------------------------------------
    async def _fetch_rules(self, host: str) -> RobotFileParser:
        robots_url = f"{host}/robots.txt"
        try:
            response = await self.client.get(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            ROBOTS_FETCHES.labels(result="error").inc()
            logger.warning(f"Could not fetch robots.txt for {host}: {exc}")
            return _allow_all()
        except Exception as exc:
            ROBOTS_FETCHES.labels(result="error").inc()
            logger.error(f"Unexpected error fetching robots.txt for {host}: {exc}")
            return _allow_all()

        if not 200 <= response.status_code < 300:
            ROBOTS_FETCHES.labels(result="missing").inc()
            logger.debug(f"robots.txt for {host} returned {response.status_code}; allowing all")
            return _allow_all()

        content_type = (response.headers.get("Content-Type") or "text/plain").lower()
        if not content_type.startswith("text/"):
            ROBOTS_FETCHES.labels(result="not_text").inc()
            logger.debug(f"robots.txt for {host} is {content_type}; allowing all")
            return _allow_all()

        parser = RobotFileParser(robots_url)
        parser.parse(response.text.splitlines())
        ROBOTS_FETCHES.labels(result="parsed").inc()
        return parser
