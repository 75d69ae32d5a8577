from __future__ import annotations

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup


def extract_title(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return ""


def extract_links(base_url: str, html: str) -> List[str]:
    """
    Absolute targets of every ``<a href>`` in document order.

    No filtering or de-duplication happens here: off-site and non-http
    targets are returned too, the crawl engine decides what to follow.
    """
    soup = BeautifulSoup(html, "lxml")
    links: List[str] = []

    for tag in soup.find_all("a", href=True):
        href = tag["href"].strip()
        if not href:
            continue
        try:
            links.append(urljoin(base_url, href))
        except ValueError:
            # urljoin rejects some malformed hosts (e.g. broken IPv6 literals)
            links.append(href)

    return links
