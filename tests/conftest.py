import os
import sys
from pathlib import Path

import httpx
import pytest
from tortoise import Tortoise

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from searchcrawler.storage.models import MODEL_MODULES


CONFIG_ENV_KEYS = [
    "DATABASE_URL",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "CRAWLER_USER_AGENT",
    "MAX_CRAWL_DEPTH",
    "SCHEDULED_DELAY_MS",
    "POLITENESS_DELAY_MS",
    "ROBOTS_FETCH_TIMEOUT_MS",
    "MIN_WORKERS",
    "MAX_WORKERS",
    "BACKLOG_CAPACITY",
    "SEED_URLS",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep the developer's shell and any .env out of config-sensitive tests."""

    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    # find_dotenv(usecwd=True) walks up from cwd; an empty tmp dir has no .env
    monkeypatch.chdir(tmp_path)

    yield

    for key in list(os.environ.keys()):
        if key.startswith("TEST_"):
            os.environ.pop(key, None)


@pytest.fixture
async def db(tmp_path):
    """Tortoise ORM on a throwaway SQLite file."""
    await Tortoise.init(
        db_url=f"sqlite://{tmp_path / 'crawler.sqlite3'}",
        modules={"models": MODEL_MODULES},
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


class FakeSite:
    """In-memory web served through httpx.MockTransport."""

    def __init__(self, pages=None, robots=None):
        self.pages = dict(pages or {})
        self.robots = dict(robots or {})
        self.errors = {}
        self.status = {}
        self.requests = []
        self.on_request = None

    def page_requests(self):
        return [url for url in self.requests if not url.endswith("/robots.txt")]

    def robots_requests(self):
        return [url for url in self.requests if url.endswith("/robots.txt")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if self.on_request is not None:
            self.on_request(url)

        if url in self.errors:
            raise self.errors[url]

        if request.url.path == "/robots.txt":
            host = f"{request.url.scheme}://{request.url.netloc.decode()}"
            if host in self.robots:
                return httpx.Response(
                    200, headers={"Content-Type": "text/plain"}, text=self.robots[host]
                )
            return httpx.Response(404, text="not found")

        if url in self.status:
            return httpx.Response(self.status[url], text="error")

        if url in self.pages:
            return httpx.Response(
                200,
                headers={"Content-Type": "text/html; charset=utf-8"},
                text=self.pages[url],
            )
        return httpx.Response(404, text="not found")


def html_page(*links, title="Page"):
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    return f"<html><head><title>{title}</title></head><body>{anchors}</body></html>"


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
async def http_client(site):
    async with httpx.AsyncClient(transport=httpx.MockTransport(site.handler)) as client:
        yield client


@pytest.fixture
def make_page():
    return html_page
