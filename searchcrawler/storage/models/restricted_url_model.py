from tortoise import fields, models

MAX_URL_LENGTH = 2048
MAX_REASON_LENGTH = 512


class CrawlerRestrictedUrl(models.Model):
    """
    Audit trail of fetches refused by robots.txt. Append-only.
    """
    id = fields.IntField(pk=True)

    url = fields.CharField(max_length=MAX_URL_LENGTH, index=True)
    user_agent = fields.CharField(max_length=255)
    reason = fields.CharField(max_length=MAX_REASON_LENGTH)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "crawler_restricted_urls"
        indexes = ("url", "created_at")

    async def save(self, *args, **kwargs):  # type: ignore[override]
        if self.url and len(self.url) > MAX_URL_LENGTH:
            self.url = self.url[:MAX_URL_LENGTH]
        if self.reason and len(self.reason) > MAX_REASON_LENGTH:
            self.reason = self.reason[:MAX_REASON_LENGTH]
        await super().save(*args, **kwargs)
