from tortoise import fields, models


class PageRecord(models.Model):
    """
    Fetched page of a site, addressed by its path under the site root.
    """
    id = fields.IntField(pk=True)

    site = fields.ForeignKeyField(
        "models.SiteRecord",
        related_name="pages",
        on_delete=fields.CASCADE,
    )

    path = fields.CharField(max_length=2048)
    code = fields.IntField()
    content = fields.TextField()

    class Meta:
        table = "page"
        unique_together = (("site", "path"),)

    def __str__(self):
        return f"{self.path} [{self.code}]"
