from tortoise import fields, models


class IndexRecord(models.Model):
    """
    Posting of the inverted index: a lemma on a page with its occurrence count.
    """
    id = fields.IntField(pk=True)

    page = fields.ForeignKeyField(
        "models.PageRecord",
        related_name="postings",
        on_delete=fields.CASCADE,
    )
    lemma = fields.ForeignKeyField(
        "models.LemmaRecord",
        related_name="postings",
        on_delete=fields.CASCADE,
    )

    rank = fields.FloatField(source_field="index_rank")

    class Meta:
        table = "index_table"
        unique_together = (("page", "lemma"),)
