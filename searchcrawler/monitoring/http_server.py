from typing import Any, Dict

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from searchcrawler.pool import CrawlerPool
from searchcrawler.storage.models import CrawlQueueItem, QueueStatus
from searchcrawler.storage.queue_store import QueueStore

QUEUE_STORE_KEY = web.AppKey("queue_store", QueueStore)
POOL_KEY = web.AppKey("pool", CrawlerPool)


def serialize_item(item: CrawlQueueItem) -> Dict[str, Any]:
    return {
        "url": item.url,
        "status": item.status.value,
        "lastMessage": item.last_message,
        "lastCrawledAt": item.last_crawled_at.isoformat() if item.last_crawled_at else None,
        "createdAt": item.created_at.isoformat() if item.created_at else None,
        "foundOnDomain": item.found_on_domain,
    }


# -------------------------
# /metrics endpoint
# -------------------------

async def metrics_handler(request: web.Request) -> web.Response:
    data = generate_latest()

    # aiohttp wants the bare content type; charset is passed separately
    ctype = CONTENT_TYPE_LATEST.split(";")[0]

    return web.Response(body=data, content_type=ctype)


# -------------------------
# read-only queue endpoints
# -------------------------

async def list_queue_handler(request: web.Request) -> web.Response:
    items = await request.app[QUEUE_STORE_KEY].find_all()
    return web.json_response([serialize_item(item) for item in items])


async def queue_by_status_handler(request: web.Request) -> web.Response:
    raw_status = request.match_info["status"].upper()
    try:
        status = QueueStatus(raw_status)
    except ValueError:
        return web.json_response(
            {
                "error": f"Unknown status '{request.match_info['status']}'",
                "allowed": [s.value for s in QueueStatus],
            },
            status=400,
        )

    items = await request.app[QUEUE_STORE_KEY].find_by_status(status)
    return web.json_response([serialize_item(item) for item in items])


async def executor_status_handler(request: web.Request) -> web.Response:
    return web.json_response(request.app[POOL_KEY].status())


def build_app(queue_store: QueueStore, pool: CrawlerPool) -> web.Application:
    app = web.Application()
    app[QUEUE_STORE_KEY] = queue_store
    app[POOL_KEY] = pool

    app.router.add_get("/metrics", metrics_handler)
    app.router.add_get("/api/v1/crawler-queue/", list_queue_handler)
    app.router.add_get("/api/v1/crawler-queue/status/{status}", queue_by_status_handler)
    app.router.add_get("/api/crawler-executor/status", executor_status_handler)
    return app


async def start_http_server(queue_store: QueueStore, pool: CrawlerPool, port: int = 8000):
    app = build_app(queue_store, pool)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()

    return runner, site
