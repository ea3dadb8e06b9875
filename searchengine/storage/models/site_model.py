from tortoise import fields, models

from searchengine.domain import SiteStatus


class SiteRecord(models.Model):
    """
    Configured site root and the state of its last crawl.
    """
    id = fields.IntField(pk=True)

    url = fields.CharField(max_length=255, index=True)
    name = fields.CharField(max_length=255)
    status = fields.CharEnumField(SiteStatus, max_length=16)
    status_time = fields.DatetimeField()
    last_error = fields.TextField(null=True)

    class Meta:
        table = "site"

    def __str__(self):
        return f"{self.url} [{self.status}]"
