from .queue_item_model import CrawlQueueItem, QueueStatus
from .restricted_url_model import CrawlerRestrictedUrl

MODEL_MODULES = [
    "searchcrawler.storage.models.queue_item_model",
    "searchcrawler.storage.models.restricted_url_model",
]

__all__ = [
    "CrawlQueueItem",
    "QueueStatus",
    "CrawlerRestrictedUrl",
    "MODEL_MODULES",
]
