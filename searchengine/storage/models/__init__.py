from .site_model import SiteRecord
from .page_model import PageRecord
from .lemma_model import LemmaRecord
from .index_model import IndexRecord

__all__ = [
    "SiteRecord",
    "PageRecord",
    "LemmaRecord",
    "IndexRecord",
]
