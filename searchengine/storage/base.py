"""Storage port used by the crawler, indexer and search engine.

Backends implement the four repositories; the core never talks to a
database directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from searchengine.domain import Lemma, Page, Posting, Site


class SiteRepository(ABC):
    @abstractmethod
    async def find_by_url(self, url: str) -> Optional[Site]: ...

    @abstractmethod
    async def save(self, site: Site) -> Site:
        """Insert when ``site.id`` is None, update otherwise."""

    @abstractmethod
    async def delete(self, site: Site) -> None:
        """Remove the site with its postings, lemmas and pages."""

    @abstractmethod
    async def find_all(self) -> List[Site]: ...


class PageRepository(ABC):
    @abstractmethod
    async def find_by_path_and_site(self, path: str, site: Site) -> Optional[Page]: ...

    @abstractmethod
    async def get(self, page_id: int) -> Optional[Page]: ...

    @abstractmethod
    async def save(self, page: Page) -> Page: ...

    @abstractmethod
    async def find_all_by_site(self, site: Site) -> List[Page]: ...

    @abstractmethod
    async def delete_all_by_site(self, site: Site) -> int: ...

    @abstractmethod
    async def count_by_site(self, site: Site) -> int: ...


class LemmaRepository(ABC):
    @abstractmethod
    async def find_by_text_and_site(self, text: str, site: Site) -> Optional[Lemma]: ...

    @abstractmethod
    async def get(self, lemma_id: int) -> Optional[Lemma]: ...

    @abstractmethod
    async def save(self, lemma: Lemma) -> Lemma: ...

    @abstractmethod
    async def delete(self, lemma: Lemma) -> None: ...

    @abstractmethod
    async def find_all_by_site(self, site: Site) -> List[Lemma]: ...

    @abstractmethod
    async def delete_all_by_site(self, site: Site) -> int: ...

    @abstractmethod
    async def count_by_site(self, site: Site) -> int: ...


class IndexRepository(ABC):
    @abstractmethod
    async def save(self, posting: Posting) -> Posting: ...

    @abstractmethod
    async def find_all_by_lemma(self, lemma: Lemma) -> List[Posting]:
        """Postings of a lemma in insertion order."""

    @abstractmethod
    async def find_all_by_page(self, page: Page) -> List[Posting]: ...

    @abstractmethod
    async def delete_all_by_page(self, page: Page) -> int: ...

    @abstractmethod
    async def find_ranks_for_page_and_lemmas(
        self, page: Page, lemmas: Sequence[Lemma]
    ) -> List[float]: ...


@dataclass
class Storage:
    sites: SiteRepository
    pages: PageRepository
    lemmas: LemmaRepository
    indexes: IndexRepository

    async def close(self) -> None:
        return None
