from enum import Enum

from tortoise import fields, models


class QueueStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


class CrawlQueueItem(models.Model):
    """
    One crawl queue row per root domain (or manually seeded root URL).

    Rows discovered by the crawler start as STOPPED and need a manual
    promotion to PENDING before the scheduler picks them up.
    """
    url = fields.CharField(max_length=2048, pk=True)
    status = fields.CharEnumField(
        QueueStatus,
        max_length=20,
        default=QueueStatus.STOPPED,
        index=True,
    )
    last_message = fields.TextField(null=True)
    last_crawled_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    # root domain whose pages linked here; null for seeded entries
    found_on_domain = fields.CharField(max_length=2048, null=True)

    class Meta:
        table = "crawler_queue"

    def __str__(self):
        return f"{self.url} [{self.status.value}]"
