"""
Records exchanged between the core and the storage backends.

Plain dataclasses: the ORM rows live in ``searchengine.storage.models`` and
are converted at the storage boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SiteStatus(str, Enum):
    INDEXING = "INDEXING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


@dataclass
class Site:
    url: str
    name: str
    status: SiteStatus = SiteStatus.INDEXING
    status_time: datetime = field(default_factory=utc_now)
    last_error: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Page:
    site_id: int
    # suffix of the page URL after the site root, always starts with "/"
    path: str
    code: int
    content: str
    id: Optional[int] = None


@dataclass
class Lemma:
    site_id: int
    lemma: str
    # number of pages of the site containing the lemma at least once
    frequency: int = 1
    id: Optional[int] = None


@dataclass
class Posting:
    page_id: int
    lemma_id: int
    # occurrences of the lemma on the page
    rank: float
    id: Optional[int] = None
