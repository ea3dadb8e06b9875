import asyncio
from typing import List, Set

from loguru import logger

from searchengine.domain import Site
from searchengine.errors import NetworkError
from searchengine.fetcher import Fetcher
from searchengine.indexer import PageIndexer
from searchengine.pool import CrawlPool, PoolShutdownError
from searchengine.utils.url_utils import canonicalize, get_domain, is_in_scope, site_path


class SiteCrawler:
    """Recursive crawl of one site.

    Every page visit runs as a task of ``pool``; a visit forks one child task
    per newly discovered in-scope link and joins all of them before it
    finishes. ``cancel_event`` stops expansion without failing the crawl.
    """

    def __init__(
        self,
        site: Site,
        fetcher: Fetcher,
        indexer: PageIndexer,
        pool: CrawlPool,
        cancel_event: asyncio.Event,
    ):
        self.site = site
        self.fetcher = fetcher
        self.indexer = indexer
        self.pool = pool
        self.cancel_event = cancel_event
        self.name = get_domain(site.url)
        # URLs are added when discovered, before their fetch; doubles as cycle guard
        self.discovered: Set[str] = {site.url}

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set() or self.pool.is_shutdown

    async def crawl(self) -> None:
        logger.info(f"[{self.name}] Crawl started from {self.site.url}")
        try:
            root = self.pool.submit(self.visit(self.site.url))
        except PoolShutdownError:
            logger.info(f"[{self.name}] Pool shut down before the crawl started")
            return
        await root
        logger.info(
            f"[{self.name}] Crawl finished, {len(self.discovered)} URLs discovered"
            + (" (cancelled)" if self.cancelled else "")
        )

    async def visit(self, url: str) -> None:
        # --------------------------
        # 1) Fetch stage
        # --------------------------
        try:
            async with self.pool.slot():
                fetched = await self.fetcher.fetch(url)
        except NetworkError as exc:
            await self.indexer.mark_failed(self.site, exc)
            return

        # --------------------------
        # 2) Storage stage
        # --------------------------
        try:
            await self.indexer.index_page(self.site, site_path(self.site.url, url), fetched)
        except Exception as exc:
            logger.exception(f"[{self.name}] Error indexing {url}: {exc}")
            await self.indexer.mark_failed(self.site, exc)
            return

        # --------------------------
        # 3) Link expansion stage
        # --------------------------
        children = self._discover(fetched.links)
        if not children:
            return

        tasks: List[asyncio.Task] = []
        for child in sorted(children):
            if self.cancelled:
                break
            try:
                tasks.append(self.pool.submit(self.visit(child)))
            except PoolShutdownError:
                break

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for child, result in zip(sorted(children), results):
                if isinstance(result, Exception):
                    logger.error(f"[{self.name}] Branch {child} failed: {result!r}")

    def _discover(self, links: List[str]) -> List[str]:
        children = []
        for link in links:
            if self.cancelled:
                break
            candidate = canonicalize(link)
            if not is_in_scope(self.site.url, candidate):
                continue
            if candidate in self.discovered:
                continue
            self.discovered.add(candidate)
            children.append(candidate)
        return children
