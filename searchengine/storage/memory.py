"""In-process storage backend.

Every operation completes without awaiting, so on a single event loop each
call is atomic. Stored records are copies: callers must ``save`` to persist
changes, as with a database backend.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from searchengine.domain import Lemma, Page, Posting, Site
from searchengine.storage.base import (
    IndexRepository,
    LemmaRepository,
    PageRepository,
    SiteRepository,
    Storage,
)


@dataclass
class _Tables:
    sites: Dict[int, Site] = field(default_factory=dict)
    pages: Dict[int, Page] = field(default_factory=dict)
    lemmas: Dict[int, Lemma] = field(default_factory=dict)
    postings: Dict[int, Posting] = field(default_factory=dict)
    ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_id(self) -> int:
        return next(self.ids)


class MemorySiteRepository(SiteRepository):
    def __init__(self, tables: _Tables):
        self.tables = tables

    async def find_by_url(self, url: str) -> Optional[Site]:
        for site in self.tables.sites.values():
            if site.url == url:
                return replace(site)
        return None

    async def save(self, site: Site) -> Site:
        if site.id is None:
            site.id = self.tables.next_id()
        self.tables.sites[site.id] = replace(site)
        return site

    async def delete(self, site: Site) -> None:
        page_ids = {p.id for p in self.tables.pages.values() if p.site_id == site.id}
        for posting_id in [
            i for i, p in self.tables.postings.items() if p.page_id in page_ids
        ]:
            del self.tables.postings[posting_id]
        for lemma_id in [
            i for i, l in self.tables.lemmas.items() if l.site_id == site.id
        ]:
            del self.tables.lemmas[lemma_id]
        for page_id in page_ids:
            del self.tables.pages[page_id]
        self.tables.sites.pop(site.id, None)

    async def find_all(self) -> List[Site]:
        return [replace(s) for s in self.tables.sites.values()]


class MemoryPageRepository(PageRepository):
    def __init__(self, tables: _Tables):
        self.tables = tables

    async def find_by_path_and_site(self, path: str, site: Site) -> Optional[Page]:
        for page in self.tables.pages.values():
            if page.site_id == site.id and page.path == path:
                return replace(page)
        return None

    async def get(self, page_id: int) -> Optional[Page]:
        page = self.tables.pages.get(page_id)
        return replace(page) if page else None

    async def save(self, page: Page) -> Page:
        if page.id is None:
            for stored in self.tables.pages.values():
                if stored.site_id == page.site_id and stored.path == page.path:
                    raise ValueError(f"Duplicate page path {page.path} for site {page.site_id}")
            page.id = self.tables.next_id()
        self.tables.pages[page.id] = replace(page)
        return page

    async def find_all_by_site(self, site: Site) -> List[Page]:
        return [replace(p) for p in self.tables.pages.values() if p.site_id == site.id]

    async def delete_all_by_site(self, site: Site) -> int:
        page_ids = [i for i, p in self.tables.pages.items() if p.site_id == site.id]
        for page_id in page_ids:
            del self.tables.pages[page_id]
        return len(page_ids)

    async def count_by_site(self, site: Site) -> int:
        return sum(1 for p in self.tables.pages.values() if p.site_id == site.id)


class MemoryLemmaRepository(LemmaRepository):
    def __init__(self, tables: _Tables):
        self.tables = tables

    async def find_by_text_and_site(self, text: str, site: Site) -> Optional[Lemma]:
        for lemma in self.tables.lemmas.values():
            if lemma.site_id == site.id and lemma.lemma == text:
                return replace(lemma)
        return None

    async def get(self, lemma_id: int) -> Optional[Lemma]:
        lemma = self.tables.lemmas.get(lemma_id)
        return replace(lemma) if lemma else None

    async def save(self, lemma: Lemma) -> Lemma:
        if lemma.id is None:
            for stored in self.tables.lemmas.values():
                if stored.site_id == lemma.site_id and stored.lemma == lemma.lemma:
                    raise ValueError(f"Duplicate lemma {lemma.lemma} for site {lemma.site_id}")
            lemma.id = self.tables.next_id()
        self.tables.lemmas[lemma.id] = replace(lemma)
        return lemma

    async def delete(self, lemma: Lemma) -> None:
        self.tables.lemmas.pop(lemma.id, None)

    async def find_all_by_site(self, site: Site) -> List[Lemma]:
        return [replace(l) for l in self.tables.lemmas.values() if l.site_id == site.id]

    async def delete_all_by_site(self, site: Site) -> int:
        lemma_ids = [i for i, l in self.tables.lemmas.items() if l.site_id == site.id]
        for lemma_id in lemma_ids:
            del self.tables.lemmas[lemma_id]
        return len(lemma_ids)

    async def count_by_site(self, site: Site) -> int:
        return sum(1 for l in self.tables.lemmas.values() if l.site_id == site.id)


class MemoryIndexRepository(IndexRepository):
    def __init__(self, tables: _Tables):
        self.tables = tables

    async def save(self, posting: Posting) -> Posting:
        if posting.id is None:
            posting.id = self.tables.next_id()
        self.tables.postings[posting.id] = replace(posting)
        return posting

    async def find_all_by_lemma(self, lemma: Lemma) -> List[Posting]:
        return [replace(p) for p in self.tables.postings.values() if p.lemma_id == lemma.id]

    async def find_all_by_page(self, page: Page) -> List[Posting]:
        return [replace(p) for p in self.tables.postings.values() if p.page_id == page.id]

    async def delete_all_by_page(self, page: Page) -> int:
        posting_ids = [i for i, p in self.tables.postings.items() if p.page_id == page.id]
        for posting_id in posting_ids:
            del self.tables.postings[posting_id]
        return len(posting_ids)

    async def find_ranks_for_page_and_lemmas(
        self, page: Page, lemmas: Sequence[Lemma]
    ) -> List[float]:
        lemma_ids = {l.id for l in lemmas}
        return [
            p.rank
            for p in self.tables.postings.values()
            if p.page_id == page.id and p.lemma_id in lemma_ids
        ]


def create_memory_storage() -> Storage:
    tables = _Tables()
    return Storage(
        sites=MemorySiteRepository(tables),
        pages=MemoryPageRepository(tables),
        lemmas=MemoryLemmaRepository(tables),
        indexes=MemoryIndexRepository(tables),
    )
