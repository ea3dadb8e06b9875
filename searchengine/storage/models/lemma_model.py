from tortoise import fields, models


class LemmaRecord(models.Model):
    """
    Normal form of a word and the number of site pages containing it.
    """
    id = fields.IntField(pk=True)

    site = fields.ForeignKeyField(
        "models.SiteRecord",
        related_name="lemmas",
        on_delete=fields.CASCADE,
    )

    lemma = fields.CharField(max_length=255)
    frequency = fields.IntField(default=1)

    class Meta:
        table = "lemma"
        unique_together = (("site", "lemma"),)
