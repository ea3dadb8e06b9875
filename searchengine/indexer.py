import asyncio
from typing import Dict, Optional

from loguru import logger

from searchengine.domain import Lemma, Page, Posting, Site, SiteStatus, utc_now
from searchengine.errors import describe_error
from searchengine.fetcher import FetchResult
from searchengine.monitoring.metrics import INDEXED_PAGES
from searchengine.parsing.html_extractor import extract_text
from searchengine.parsing.lemmatizer import Lemmatizer
from searchengine.storage.base import Storage
from searchengine.utils.url_utils import get_domain


ERROR_STATUS_THRESHOLD = 400


class PageIndexer:
    """Writes pages, lemmas and postings.

    One instance is shared by every crawl in the process; its lock makes the
    read-increment-write of lemma frequencies atomic across all of them.
    """

    def __init__(self, storage: Storage, lemmatizer: Optional[Lemmatizer] = None):
        self.storage = storage
        self.lemmatizer = lemmatizer or Lemmatizer()
        self._lock = asyncio.Lock()

    async def index_page(
        self,
        site: Site,
        path: str,
        fetched: FetchResult,
        *,
        overwrite: bool = False,
    ) -> Page:
        """Store the fetched page under ``path`` and index its lemmas.

        An already recorded path is left alone unless ``overwrite`` is set, in
        which case its previous lemma contributions are withdrawn first.
        """
        lemmas: Dict[str, int] = {}
        if fetched.status_code < ERROR_STATUS_THRESHOLD:
            text = extract_text(fetched.document)
            lemmas = await asyncio.to_thread(self.lemmatizer.analyze, text)

        async with self._lock:
            page = await self.storage.pages.find_by_path_and_site(path, site)

            if page is not None and not overwrite:
                await self._touch(site)
                return page

            if page is None:
                page = Page(
                    site_id=site.id,
                    path=path,
                    code=fetched.status_code,
                    content=fetched.content,
                )
            else:
                await self._retract(page)
                page.code = fetched.status_code
                page.content = fetched.content

            await self.storage.pages.save(page)

            if page.code < ERROR_STATUS_THRESHOLD:
                await self._add_lemmas(site, page, lemmas)

            await self._touch(site)

        INDEXED_PAGES.labels(site=get_domain(site.url)).inc()
        logger.info(
            f"[{get_domain(site.url)}] Indexed {path} (status={page.code}, lemmas={len(lemmas)})"
        )
        return page

    async def _add_lemmas(self, site: Site, page: Page, lemmas: Dict[str, int]) -> None:
        for text, count in lemmas.items():
            lemma = await self.storage.lemmas.find_by_text_and_site(text, site)
            if lemma is None:
                lemma = Lemma(site_id=site.id, lemma=text, frequency=1)
            else:
                lemma.frequency += 1
            await self.storage.lemmas.save(lemma)
            await self.storage.indexes.save(
                Posting(page_id=page.id, lemma_id=lemma.id, rank=float(count))
            )

    async def _retract(self, page: Page) -> None:
        postings = await self.storage.indexes.find_all_by_page(page)
        await self.storage.indexes.delete_all_by_page(page)

        for posting in postings:
            lemma = await self.storage.lemmas.get(posting.lemma_id)
            if lemma is None:
                continue
            lemma.frequency -= 1
            if lemma.frequency > 0:
                await self.storage.lemmas.save(lemma)
            else:
                await self.storage.lemmas.delete(lemma)

    async def _touch(self, site: Site) -> None:
        site.status_time = utc_now()
        await self.storage.sites.save(site)

    async def mark_failed(self, site: Site, error: BaseException) -> None:
        async with self._lock:
            site.status = SiteStatus.FAILED
            site.last_error = describe_error(error)
            site.status_time = utc_now()
            await self.storage.sites.save(site)
        logger.warning(f"[{get_domain(site.url)}] Site marked FAILED: {site.last_error}")

    async def mark_indexed(self, site: Site) -> bool:
        async with self._lock:
            if site.status == SiteStatus.FAILED:
                return False
            site.status = SiteStatus.INDEXED
            site.status_time = utc_now()
            await self.storage.sites.save(site)
        logger.info(f"[{get_domain(site.url)}] Site indexed")
        return True
