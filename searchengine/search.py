from typing import Iterable, List, Optional, Set

from loguru import logger

from searchengine.domain import Lemma, Page, Site
from searchengine.errors import EmptyQueryError, SearchEngineError, SiteNotFoundError
from searchengine.monitoring.metrics import SEARCH_QUERIES
from searchengine.parsing.html_extractor import extract_title, parse_document
from searchengine.parsing.lemmatizer import Lemmatizer, split_words
from searchengine.schemas import SearchData, SearchResponse
from searchengine.snippets import build_snippet
from searchengine.storage.base import Storage
from searchengine.utils.url_utils import canonicalize


class SearchEngine:
    def __init__(self, storage: Storage, lemmatizer: Optional[Lemmatizer] = None):
        self.storage = storage
        self.lemmatizer = lemmatizer or Lemmatizer()

    async def search(self, query: str, site_url: str = "") -> SearchResponse:
        try:
            data = await self._search(query or "", site_url or "")
        except SearchEngineError as exc:
            SEARCH_QUERIES.labels(outcome="rejected").inc()
            logger.info(f"Search rejected for '{query}': {exc.message}")
            return SearchResponse.failed(exc)

        SEARCH_QUERIES.labels(outcome="ok").inc()
        logger.info(f"Search '{query}' -> {len(data)} result(s)")
        return SearchResponse.of(data)

    async def _search(self, query: str, site_url: str) -> List[SearchData]:
        if not query.strip():
            raise EmptyQueryError()

        sites = await self._candidate_sites(site_url)
        query_lemmas = self.lemmatizer.lemma_set(query)
        terms = self._query_terms(query)

        data: List[SearchData] = []
        for site in sites:
            lemmas = await self._resolve_lemmas(query_lemmas, site)
            for page in await self._find_pages(lemmas):
                data.append(await self._page_data(page, site, lemmas, terms))

        # sort is stable: equal relevance keeps discovery order
        data.sort(key=lambda item: item.relevance, reverse=True)
        return data

    async def _candidate_sites(self, site_url: str) -> List[Site]:
        if not site_url.strip():
            return await self.storage.sites.find_all()

        site = await self.storage.sites.find_by_url(canonicalize(site_url))
        if site is None:
            raise SiteNotFoundError()
        return [site]

    def _query_terms(self, query: str) -> List[str]:
        return [
            word
            for word in split_words(query)
            if not self.lemmatizer.is_function_word(word)
        ]

    async def _resolve_lemmas(self, texts: Iterable[str], site: Site) -> List[Lemma]:
        lemmas = []
        for text in texts:
            lemma = await self.storage.lemmas.find_by_text_and_site(text, site)
            if lemma is not None:
                lemmas.append(lemma)
        # rarest first keeps the running intersection small
        lemmas.sort(key=lambda lemma: lemma.frequency)
        return lemmas

    async def _posting_pages(self, lemma: Lemma) -> List[int]:
        return [p.page_id for p in await self.storage.indexes.find_all_by_lemma(lemma)]

    async def _find_pages(self, lemmas: List[Lemma]) -> List[Page]:
        if not lemmas:
            return []

        page_ids = await self._posting_pages(lemmas[0])
        for lemma in lemmas[1:]:
            if not page_ids:
                break
            allowed: Set[int] = set(await self._posting_pages(lemma))
            page_ids = [page_id for page_id in page_ids if page_id in allowed]

        pages = []
        for page_id in page_ids:
            page = await self.storage.pages.get(page_id)
            if page is not None:
                pages.append(page)
        return pages

    async def _page_data(
        self, page: Page, site: Site, lemmas: List[Lemma], terms: List[str]
    ) -> SearchData:
        document = parse_document(page.content)
        ranks = await self.storage.indexes.find_ranks_for_page_and_lemmas(page, lemmas)
        return SearchData(
            site=site.url.rstrip("/"),
            site_name=site.name,
            uri=page.path,
            title=extract_title(document),
            snippet=build_snippet(document, terms),
            relevance=sum(ranks),
        )
