import asyncio
from typing import List, Optional, Sequence

from loguru import logger

from searchengine.crawler import SiteCrawler
from searchengine.domain import Site, SiteStatus, utc_now
from searchengine.errors import (
    AlreadyRunningError,
    NetworkError,
    NotRunningError,
    OutOfScopeError,
    SearchEngineError,
)
from searchengine.fetcher import Fetcher
from searchengine.indexer import PageIndexer
from searchengine.monitoring.metrics import ACTIVE_CRAWLS
from searchengine.pool import CrawlPool
from searchengine.schemas import IndexingResponse
from searchengine.storage.base import Storage
from searchengine.utils.config_loader import SiteConfig
from searchengine.utils.url_utils import canonicalize, get_domain, site_path


STOPPED_BY_USER = "Индексация остановлена пользователем"


class CrawlCoordinator:
    """Owns the running site crawls: one worker task and one pool per site."""

    def __init__(
        self,
        storage: Storage,
        fetcher: Fetcher,
        indexer: PageIndexer,
        sites: Sequence[SiteConfig],
        *,
        pool_size: int,
    ):
        self.storage = storage
        self.fetcher = fetcher
        self.indexer = indexer
        self.sites = list(sites)
        self.pool_size = pool_size

        self.workers: List[asyncio.Task] = []
        self.pools: List[CrawlPool] = []
        self._cancel = asyncio.Event()
        # start, stop and single page indexing never interleave
        self._lifecycle = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return any(not worker.done() for worker in self.workers)

    @property
    def is_cancelled(self) -> bool:
        return self._cancel.is_set()

    # --------------------------
    #  Public entry points
    # --------------------------
    async def start(self) -> IndexingResponse:
        try:
            async with self._lifecycle:
                await self._start()
        except SearchEngineError as exc:
            logger.warning(f"Start rejected: {exc.message}")
            return IndexingResponse.failed(exc)
        return IndexingResponse.ok()

    async def stop(self) -> IndexingResponse:
        try:
            async with self._lifecycle:
                await self._stop()
        except SearchEngineError as exc:
            logger.warning(f"Stop rejected: {exc.message}")
            return IndexingResponse.failed(exc)
        return IndexingResponse.ok()

    async def index_one_page(self, url: str) -> IndexingResponse:
        try:
            async with self._lifecycle:
                await self._index_one_page(url)
        except SearchEngineError as exc:
            logger.warning(f"Single page indexing of {url} failed: {exc.message}")
            return IndexingResponse.failed(exc)
        return IndexingResponse.ok()

    async def wait_finished(self) -> None:
        if self.workers:
            await asyncio.gather(*self.workers, return_exceptions=True)

    # --------------------------
    #  Start
    # --------------------------
    async def _start(self) -> None:
        if self.is_running:
            raise AlreadyRunningError()

        self.workers = []
        self.pools = []

        for site_config in self.sites:
            site = await self._fresh_site(site_config)
            pool = CrawlPool(self.pool_size, name=get_domain(site.url))
            self.pools.append(pool)
            worker = asyncio.create_task(
                self._run_worker(site, pool), name=f"crawl-{get_domain(site.url)}"
            )
            self.workers.append(worker)

        logger.info(f"Indexing started for {len(self.workers)} site(s)")

    async def _fresh_site(self, site_config: SiteConfig) -> Site:
        url = canonicalize(site_config.url)

        existing = await self.storage.sites.find_by_url(url)
        if existing is not None:
            logger.info(f"[{get_domain(url)}] Removing previous index")
            await self.storage.sites.delete(existing)

        site = Site(url=url, name=site_config.name, status=SiteStatus.INDEXING)
        return await self.storage.sites.save(site)

    async def _run_worker(self, site: Site, pool: CrawlPool) -> None:
        ACTIVE_CRAWLS.inc()
        crawler = SiteCrawler(site, self.fetcher, self.indexer, pool, self._cancel)
        try:
            await crawler.crawl()
        except Exception as exc:
            logger.exception(f"[{crawler.name}] Crawl aborted: {exc}")
            # the worker stays alive until no branch of this crawl is left
            pool.shutdown()
            await pool.wait_terminated()
            try:
                await self.indexer.mark_failed(site, exc)
            except Exception as mark_exc:
                logger.error(f"[{crawler.name}] Could not record failure: {mark_exc!r}")
            return
        finally:
            ACTIVE_CRAWLS.dec()

        if self._cancel.is_set():
            # stop() records the final status
            return
        await self.indexer.mark_indexed(site)

    # --------------------------
    #  Stop
    # --------------------------
    async def _stop(self) -> None:
        if not self.is_running:
            raise NotRunningError()

        logger.info("Stopping indexing...")
        for pool in self.pools:
            pool.shutdown()
        self._cancel.set()

        try:
            await asyncio.gather(*(pool.wait_terminated() for pool in self.pools))
            await asyncio.gather(*self.workers, return_exceptions=True)
        finally:
            self.workers = []
            self.pools = []
            self._cancel.clear()

        for site in await self.storage.sites.find_all():
            if site.status == SiteStatus.INDEXED:
                continue
            site.status = SiteStatus.FAILED
            site.last_error = STOPPED_BY_USER
            site.status_time = utc_now()
            await self.storage.sites.save(site)

        logger.info("Indexing stopped by user")

    # --------------------------
    #  Single page
    # --------------------------
    async def _index_one_page(self, url: str) -> None:
        if self.is_running:
            raise AlreadyRunningError()

        url = canonicalize(url)
        site_config = self._config_for(url)
        if site_config is None:
            raise OutOfScopeError()

        site = await self._site_for(url, site_config)
        try:
            fetched = await self.fetcher.fetch(url)
        except NetworkError as exc:
            await self.indexer.mark_failed(site, exc)
            raise

        await self.indexer.index_page(site, site_path(site.url, url), fetched, overwrite=True)

    def _config_for(self, url: str) -> Optional[SiteConfig]:
        matches = [c for c in self.sites if url.startswith(canonicalize(c.url))]
        if not matches:
            return None
        return max(matches, key=lambda c: len(canonicalize(c.url)))

    async def _site_for(self, url: str, site_config: SiteConfig) -> Site:
        owners = [s for s in await self.storage.sites.find_all() if url.startswith(s.url)]
        if owners:
            return max(owners, key=lambda s: len(s.url))

        site = Site(
            url=canonicalize(site_config.url),
            name=site_config.name,
            status=SiteStatus.INDEXED,
        )
        return await self.storage.sites.save(site)
