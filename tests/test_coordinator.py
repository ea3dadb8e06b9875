import asyncio
from collections import Counter

import httpx
import pytest

from searchengine.coordinator import STOPPED_BY_USER, CrawlCoordinator
from searchengine.domain import SiteStatus
from searchengine.errors import AlreadyRunningError, NotRunningError, OutOfScopeError
from searchengine.fetcher import Fetcher
from searchengine.indexer import PageIndexer
from searchengine.parsing.lemmatizer import Lemmatizer
from searchengine.storage.memory import create_memory_storage
from searchengine.utils.config_loader import SiteConfig


ROOT = "https://www.example.com/"

PAGES = {
    "/": (
        "<title>Главная</title><p>Кот на главной</p>"
        "<a href='/news/'>Новости</a><a href='/about'>О нас</a>"
        "<a href='https://www.other.com/'>Чужой сайт</a><a href='/news/#top'>Наверх</a>"
    ),
    "/news/": "<title>Новости</title><p>Кот и собака</p><a href='/'>Домой</a><a href='/news/1'>Первая</a>",
    "/news/1/": "<title>Первая</title><p>Собака</p><a href='/about/'>О нас</a>",
    "/about/": "<title>О нас</title><p>Дом</p>",
}


@pytest.fixture(scope="module")
def lemmatizer():
    return Lemmatizer()


class MockSite:
    """Serves PAGES for www.example.com and records every requested path."""

    def __init__(self, pages=None, gate=None, gated_path=None, broken_path=None):
        self.pages = pages or PAGES
        self.requests = Counter()
        self.gate = gate
        self.gated_path = gated_path
        self.broken_path = broken_path
        self.gate_entered = asyncio.Event()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests[(request.url.host, path)] += 1

        if path == self.broken_path:
            raise httpx.ConnectError("connection reset", request=request)
        if self.gate is not None and path == self.gated_path:
            self.gate_entered.set()
            await self.gate.wait()

        body = self.pages.get(path)
        if body is None:
            return httpx.Response(404, text="<p>Нет такой страницы</p>")
        return httpx.Response(200, text=f"<html><body>{body}</body></html>")


def build(mock: MockSite, lemmatizer, sites=None, storage=None, indexer_cls=PageIndexer):
    storage = storage or create_memory_storage()
    client = httpx.AsyncClient(transport=httpx.MockTransport(mock.handler))
    fetcher = Fetcher(client, user_agent="TestBot/1.0", referrer="https://ref/", delay=0)
    indexer = indexer_cls(storage, lemmatizer)
    coordinator = CrawlCoordinator(
        storage,
        fetcher,
        indexer,
        sites or [SiteConfig(url="http://example.com", name="Example")],
        pool_size=2,
    )
    return storage, client, coordinator


@pytest.mark.asyncio
async def test_crawl_visits_each_in_scope_page_once(lemmatizer):
    mock = MockSite()
    storage, client, coordinator = build(mock, lemmatizer)

    response = await coordinator.start()
    assert response.result is True
    await coordinator.wait_finished()
    await client.aclose()

    site = await storage.sites.find_by_url(ROOT)
    assert site.status == SiteStatus.INDEXED
    assert site.last_error is None

    paths = sorted(p.path for p in await storage.pages.find_all_by_site(site))
    assert paths == ["/", "/about/", "/news/", "/news/1/"]

    assert all(count == 1 for count in mock.requests.values())
    assert ("www.other.com", "/") not in mock.requests

    cat = await storage.lemmas.find_by_text_and_site("кот", site)
    assert cat.frequency == 2


@pytest.mark.asyncio
async def test_restart_replaces_previous_index(lemmatizer):
    mock = MockSite()
    storage, client, coordinator = build(mock, lemmatizer)

    await coordinator.start()
    await coordinator.wait_finished()
    first_site = await storage.sites.find_by_url(ROOT)

    await coordinator.start()
    await coordinator.wait_finished()
    await client.aclose()

    sites = await storage.sites.find_all()
    assert len(sites) == 1
    assert sites[0].id != first_site.id
    assert await storage.pages.count_by_site(sites[0]) == 4
    assert (await storage.lemmas.find_by_text_and_site("кот", sites[0])).frequency == 2


@pytest.mark.asyncio
async def test_start_twice_is_rejected_without_touching_workers(lemmatizer):
    gate = asyncio.Event()
    mock = MockSite(gate=gate, gated_path="/news/")
    storage, client, coordinator = build(mock, lemmatizer)

    await coordinator.start()
    workers = list(coordinator.workers)

    second = await coordinator.start()
    assert second.result is False
    assert second.error == AlreadyRunningError.message
    assert coordinator.workers == workers

    gate.set()
    await coordinator.wait_finished()
    await client.aclose()


@pytest.mark.asyncio
async def test_stop_marks_unfinished_sites_failed(lemmatizer):
    gate = asyncio.Event()
    mock = MockSite(gate=gate, gated_path="/news/")
    storage, client, coordinator = build(mock, lemmatizer)

    await coordinator.start()
    await asyncio.wait_for(mock.gate_entered.wait(), timeout=5)

    stopping = asyncio.create_task(coordinator.stop())
    await asyncio.sleep(0)
    assert coordinator.is_cancelled
    gate.set()

    response = await asyncio.wait_for(stopping, timeout=5)
    await client.aclose()

    assert response.result is True
    assert not coordinator.is_running

    site = await storage.sites.find_by_url(ROOT)
    assert site.status == SiteStatus.FAILED
    assert site.last_error == STOPPED_BY_USER
    # the children of the gated page are never fetched
    assert ("www.example.com", "/news/1/") not in mock.requests


@pytest.mark.asyncio
async def test_stop_without_running_crawl_is_rejected(lemmatizer):
    _, client, coordinator = build(MockSite(), lemmatizer)

    response = await coordinator.stop()
    await client.aclose()

    assert response.result is False
    assert response.error == NotRunningError.message


@pytest.mark.asyncio
async def test_network_error_fails_site_but_crawl_finishes(lemmatizer):
    mock = MockSite(broken_path="/about/")
    storage, client, coordinator = build(mock, lemmatizer)

    await coordinator.start()
    await coordinator.wait_finished()
    await client.aclose()

    site = await storage.sites.find_by_url(ROOT)
    assert site.status == SiteStatus.FAILED
    assert site.last_error == "ConnectError connection reset"
    assert await storage.pages.find_by_path_and_site("/news/1/", site) is not None


@pytest.mark.asyncio
async def test_index_one_page_twice_keeps_single_row(lemmatizer):
    mock = MockSite()
    storage, client, coordinator = build(mock, lemmatizer)

    first = await coordinator.index_one_page("http://example.com/news/")
    second = await coordinator.index_one_page("https://www.example.com/news")
    await client.aclose()

    assert first.result is True and second.result is True

    site = await storage.sites.find_by_url(ROOT)
    assert site.status == SiteStatus.INDEXED
    assert await storage.pages.count_by_site(site) == 1
    lemmas = {l.lemma: l.frequency for l in await storage.lemmas.find_all_by_site(site)}
    assert lemmas["кот"] == 1
    assert lemmas["собака"] == 1
    assert set(lemmas.values()) == {1}


@pytest.mark.asyncio
async def test_index_one_page_outside_configured_sites(lemmatizer):
    mock = MockSite()
    storage, client, coordinator = build(mock, lemmatizer)

    response = await coordinator.index_one_page("https://www.other.com/page")
    await client.aclose()

    assert response.result is False
    assert response.error == OutOfScopeError.message
    assert await storage.sites.find_all() == []
    assert not mock.requests


@pytest.mark.asyncio
async def test_index_one_page_rejected_while_crawling(lemmatizer):
    gate = asyncio.Event()
    mock = MockSite(gate=gate, gated_path="/news/")
    _, client, coordinator = build(mock, lemmatizer)

    await coordinator.start()
    response = await coordinator.index_one_page("https://www.example.com/about/")

    gate.set()
    await coordinator.wait_finished()
    await client.aclose()

    assert response.result is False
    assert response.error == AlreadyRunningError.message


class Yielding:
    """Repository wrapper that suspends before each of ``methods``."""

    def __init__(self, inner, methods, delay=0.0):
        self.inner = inner
        self.methods = set(methods)
        self.delay = delay

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name not in self.methods:
            return attr

        async def wrapper(*args, **kwargs):
            await asyncio.sleep(self.delay)
            return await attr(*args, **kwargs)

        return wrapper


@pytest.mark.asyncio
async def test_concurrent_starts_launch_a_single_crawl(lemmatizer):
    storage = create_memory_storage()
    storage.sites = Yielding(storage.sites, {"find_by_url", "delete", "save"}, delay=0.01)
    mock = MockSite()
    _, client, coordinator = build(mock, lemmatizer, storage=storage)

    first, second = await asyncio.gather(coordinator.start(), coordinator.start())

    assert sorted([first.result, second.result]) == [False, True]
    assert AlreadyRunningError.message in (first.error, second.error)
    assert len(coordinator.workers) == 1

    await coordinator.wait_finished()
    await client.aclose()

    assert len(await storage.sites.find_all()) == 1
    assert all(count == 1 for count in mock.requests.values())


@pytest.mark.asyncio
async def test_index_one_page_waits_for_start_and_is_rejected(lemmatizer):
    storage = create_memory_storage()
    storage.sites = Yielding(storage.sites, {"find_by_url", "delete", "save"}, delay=0.01)
    gate = asyncio.Event()
    mock = MockSite(gate=gate, gated_path="/")
    _, client, coordinator = build(mock, lemmatizer, storage=storage)

    started, single = await asyncio.gather(
        coordinator.start(),
        coordinator.index_one_page("https://www.example.com/about/"),
    )

    assert started.result is True
    assert single.result is False
    assert single.error == AlreadyRunningError.message

    gate.set()
    await coordinator.wait_finished()
    await client.aclose()


class FlakyStorageIndexer(PageIndexer):
    """Fails to store ``/about/`` and to record the failure afterwards."""

    def __init__(self, storage, lemmatizer=None):
        super().__init__(storage, lemmatizer)
        self.failed = asyncio.Event()

    async def index_page(self, site, path, fetched, *, overwrite=False):
        if path == "/about/":
            raise ConnectionError("storage unavailable")
        return await super().index_page(site, path, fetched, overwrite=overwrite)

    async def mark_failed(self, site, error):
        self.failed.set()
        raise ConnectionError("storage unavailable")


@pytest.mark.asyncio
async def test_failing_branch_does_not_end_crawl_early(lemmatizer):
    gate = asyncio.Event()
    mock = MockSite(gate=gate, gated_path="/news/")
    storage, client, coordinator = build(mock, lemmatizer, indexer_cls=FlakyStorageIndexer)

    await coordinator.start()
    pool = coordinator.pools[0]
    await asyncio.wait_for(coordinator.indexer.failed.wait(), timeout=5)
    await asyncio.wait_for(mock.gate_entered.wait(), timeout=5)
    await asyncio.sleep(0.01)

    # the sibling branch is still fetching, so the crawl is still running
    assert coordinator.is_running
    rejected = await coordinator.start()
    assert rejected.result is False
    assert rejected.error == AlreadyRunningError.message

    gate.set()
    await asyncio.wait_for(coordinator.wait_finished(), timeout=5)
    await client.aclose()

    assert pool.active_tasks == 0
    assert ("www.example.com", "/news/1/") in mock.requests


SIBLING_PAGES = {
    "/": "<title>Главная</title>" + "".join(f"<a href='/p{i}/'>Раздел</a>" for i in range(8)),
    **{f"/p{i}/": "<p>Кот дом собака кот</p>" for i in range(8)},
}


@pytest.mark.asyncio
async def test_lemma_frequencies_stay_consistent_across_concurrent_crawls(lemmatizer):
    storage = create_memory_storage()
    storage.lemmas = Yielding(storage.lemmas, {"find_by_text_and_site", "save", "delete"})
    storage.indexes = Yielding(storage.indexes, {"save"})
    mock = MockSite(pages=SIBLING_PAGES)
    sites = [
        SiteConfig(url="https://www.example.com", name="Example"),
        SiteConfig(url="https://www.other.com", name="Other"),
    ]
    _, client, coordinator = build(mock, lemmatizer, sites=sites, storage=storage)

    await coordinator.start()
    await coordinator.wait_finished()
    await client.aclose()

    for site in await storage.sites.find_all():
        assert site.status == SiteStatus.INDEXED
        assert await storage.pages.count_by_site(site) == 9

        for lemma in await storage.lemmas.find_all_by_site(site):
            postings = await storage.indexes.find_all_by_lemma(lemma)
            assert lemma.frequency == len({p.page_id for p in postings})

        cat = await storage.lemmas.find_by_text_and_site("кот", site)
        assert cat.frequency == 8
