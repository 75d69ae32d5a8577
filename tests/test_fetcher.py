import httpx
import pytest

from searchcrawler.fetcher import FetchResult, PageFetcher, categorize_error
from searchcrawler.monitoring.metrics import FETCH_FAILURES, PAGES_FETCHED


def fetcher_for(handler, user_agent="TestBot/1.0"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return client, PageFetcher(client, user_agent)


@pytest.mark.asyncio
async def test_fetch_returns_document_with_links_in_order():
    seen_headers = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen_headers["user-agent"] = request.headers["User-Agent"]
        return httpx.Response(
            status_code=200,
            headers={"Content-Type": "text/html; charset=utf-8"},
            text=(
                "<html><head><title>Home</title></head><body>"
                "<a href='/p2'>2</a><a href='https://b.example/'>b</a><a href='/p1'>1</a>"
                "</body></html>"
            ),
        )

    before = PAGES_FETCHED._value.get()
    client, fetcher = fetcher_for(handler)
    async with client:
        result = await fetcher.fetch("https://a.example/")

    assert isinstance(result, FetchResult)
    assert result.ok
    assert result.document.title == "Home"
    assert result.document.links == [
        "https://a.example/p2",
        "https://b.example/",
        "https://a.example/p1",
    ]
    assert seen_headers["user-agent"] == "TestBot/1.0"
    assert PAGES_FETCHED._value.get() == before + 1


@pytest.mark.asyncio
async def test_fetch_resolves_links_against_redirect_target():
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://a.example/new/"})
        return httpx.Response(
            200, headers={"Content-Type": "text/html"}, text="<a href='child'>c</a>"
        )

    client, fetcher = fetcher_for(handler)
    async with client:
        result = await fetcher.fetch("https://a.example/old")

    assert result.ok
    assert result.redirect_count == 1
    assert result.document.url == "https://a.example/new/"
    assert result.document.links == ["https://a.example/new/child"]


@pytest.mark.asyncio
async def test_fetch_non_success_status_has_no_document():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, headers={"Content-Type": "text/html"}, text="down")

    before = FETCH_FAILURES.labels(reason="http_status")._value.get()
    client, fetcher = fetcher_for(handler)
    async with client:
        result = await fetcher.fetch("https://a.example/")

    assert not result.ok
    assert result.document is None
    assert result.status_code == 503
    assert result.skip_reason == "http_status"
    assert FETCH_FAILURES.labels(reason="http_status")._value.get() == before + 1


@pytest.mark.asyncio
async def test_fetch_skips_non_html_content():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=200,
            headers={"Content-Type": "application/json"},
            json={"ok": True},
        )

    client, fetcher = fetcher_for(handler)
    async with client:
        result = await fetcher.fetch("https://a.example/api")

    assert not result.ok
    assert result.skip_reason == "non_html_content"


@pytest.mark.asyncio
async def test_fetch_skips_large_bodies(monkeypatch):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=200,
            headers={"Content-Type": "text/html"},
            content=b"x" * 50,
        )

    monkeypatch.setattr("searchcrawler.fetcher.MAX_DOWNLOAD_BYTES", 10)

    client, fetcher = fetcher_for(handler)
    async with client:
        result = await fetcher.fetch("https://a.example/large")

    assert not result.ok
    assert result.skip_reason == "body_too_large"


@pytest.mark.asyncio
async def test_fetch_transport_errors_propagate():
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, fetcher = fetcher_for(handler)
    async with client:
        with pytest.raises(httpx.ConnectError) as excinfo:
            await fetcher.fetch("https://a.example/")

    assert categorize_error(excinfo.value) == "connection_error"


def test_categorize_error():
    assert categorize_error(httpx.ReadTimeout("slow")) == "network_timeout"
    assert categorize_error(httpx.ConnectError("refused")) == "connection_error"
    assert categorize_error(httpx.TooManyRedirects("loop")) == "http_error"
    assert categorize_error(httpx.InvalidURL("bad")) == "invalid_url"
    assert categorize_error(RuntimeError("boom")) == "unexpected"
