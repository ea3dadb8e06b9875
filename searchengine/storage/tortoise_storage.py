from __future__ import annotations

from typing import List, Optional, Sequence

from tortoise import Tortoise
from tortoise.transactions import in_transaction

from searchengine.domain import Lemma, Page, Posting, Site, SiteStatus
from searchengine.storage.base import (
    IndexRepository,
    LemmaRepository,
    PageRepository,
    SiteRepository,
    Storage,
)
from searchengine.storage.models import IndexRecord, LemmaRecord, PageRecord, SiteRecord


def _site(record: SiteRecord) -> Site:
    return Site(
        id=record.id,
        url=record.url,
        name=record.name,
        status=SiteStatus(record.status),
        status_time=record.status_time,
        last_error=record.last_error,
    )


def _page(record: PageRecord) -> Page:
    return Page(
        id=record.id,
        site_id=record.site_id,
        path=record.path,
        code=record.code,
        content=record.content,
    )


def _lemma(record: LemmaRecord) -> Lemma:
    return Lemma(
        id=record.id,
        site_id=record.site_id,
        lemma=record.lemma,
        frequency=record.frequency,
    )


def _posting(record: IndexRecord) -> Posting:
    return Posting(
        id=record.id,
        page_id=record.page_id,
        lemma_id=record.lemma_id,
        rank=record.rank,
    )


class TortoiseSiteRepository(SiteRepository):
    async def find_by_url(self, url: str) -> Optional[Site]:
        record = await SiteRecord.filter(url=url).order_by("id").first()
        return _site(record) if record else None

    async def save(self, site: Site) -> Site:
        values = {
            "url": site.url,
            "name": site.name,
            "status": site.status,
            "status_time": site.status_time,
            "last_error": site.last_error,
        }
        if site.id is None:
            record = await SiteRecord.create(**values)
            site.id = record.id
        else:
            await SiteRecord.filter(id=site.id).update(**values)
        return site

    async def delete(self, site: Site) -> None:
        # postings reference both pages and lemmas, so they go first
        async with in_transaction() as conn:
            page_ids = await (
                PageRecord.filter(site_id=site.id)
                .using_db(conn)
                .values_list("id", flat=True)
            )
            if page_ids:
                await IndexRecord.filter(page_id__in=page_ids).using_db(conn).delete()
            await LemmaRecord.filter(site_id=site.id).using_db(conn).delete()
            await PageRecord.filter(site_id=site.id).using_db(conn).delete()
            await SiteRecord.filter(id=site.id).using_db(conn).delete()

    async def find_all(self) -> List[Site]:
        return [_site(r) for r in await SiteRecord.all().order_by("id")]


class TortoisePageRepository(PageRepository):
    async def find_by_path_and_site(self, path: str, site: Site) -> Optional[Page]:
        record = await PageRecord.filter(site_id=site.id, path=path).first()
        return _page(record) if record else None

    async def get(self, page_id: int) -> Optional[Page]:
        record = await PageRecord.filter(id=page_id).first()
        return _page(record) if record else None

    async def save(self, page: Page) -> Page:
        if page.id is None:
            record = await PageRecord.create(
                site_id=page.site_id,
                path=page.path,
                code=page.code,
                content=page.content,
            )
            page.id = record.id
        else:
            await PageRecord.filter(id=page.id).update(
                path=page.path,
                code=page.code,
                content=page.content,
            )
        return page

    async def find_all_by_site(self, site: Site) -> List[Page]:
        return [_page(r) for r in await PageRecord.filter(site_id=site.id).order_by("id")]

    async def delete_all_by_site(self, site: Site) -> int:
        return await PageRecord.filter(site_id=site.id).delete()

    async def count_by_site(self, site: Site) -> int:
        return await PageRecord.filter(site_id=site.id).count()


class TortoiseLemmaRepository(LemmaRepository):
    async def find_by_text_and_site(self, text: str, site: Site) -> Optional[Lemma]:
        record = await LemmaRecord.filter(site_id=site.id, lemma=text).first()
        return _lemma(record) if record else None

    async def get(self, lemma_id: int) -> Optional[Lemma]:
        record = await LemmaRecord.filter(id=lemma_id).first()
        return _lemma(record) if record else None

    async def save(self, lemma: Lemma) -> Lemma:
        if lemma.id is None:
            record = await LemmaRecord.create(
                site_id=lemma.site_id,
                lemma=lemma.lemma,
                frequency=lemma.frequency,
            )
            lemma.id = record.id
        else:
            await LemmaRecord.filter(id=lemma.id).update(frequency=lemma.frequency)
        return lemma

    async def delete(self, lemma: Lemma) -> None:
        await LemmaRecord.filter(id=lemma.id).delete()

    async def find_all_by_site(self, site: Site) -> List[Lemma]:
        return [_lemma(r) for r in await LemmaRecord.filter(site_id=site.id).order_by("id")]

    async def delete_all_by_site(self, site: Site) -> int:
        return await LemmaRecord.filter(site_id=site.id).delete()

    async def count_by_site(self, site: Site) -> int:
        return await LemmaRecord.filter(site_id=site.id).count()


class TortoiseIndexRepository(IndexRepository):
    async def save(self, posting: Posting) -> Posting:
        if posting.id is None:
            record = await IndexRecord.create(
                page_id=posting.page_id,
                lemma_id=posting.lemma_id,
                rank=posting.rank,
            )
            posting.id = record.id
        else:
            await IndexRecord.filter(id=posting.id).update(rank=posting.rank)
        return posting

    async def find_all_by_lemma(self, lemma: Lemma) -> List[Posting]:
        return [_posting(r) for r in await IndexRecord.filter(lemma_id=lemma.id).order_by("id")]

    async def find_all_by_page(self, page: Page) -> List[Posting]:
        return [_posting(r) for r in await IndexRecord.filter(page_id=page.id).order_by("id")]

    async def delete_all_by_page(self, page: Page) -> int:
        return await IndexRecord.filter(page_id=page.id).delete()

    async def find_ranks_for_page_and_lemmas(
        self, page: Page, lemmas: Sequence[Lemma]
    ) -> List[float]:
        lemma_ids = [l.id for l in lemmas]
        if not lemma_ids:
            return []
        ranks = await IndexRecord.filter(
            page_id=page.id, lemma_id__in=lemma_ids
        ).values_list("rank", flat=True)
        return list(ranks)


class TortoiseStorage(Storage):
    async def close(self) -> None:
        await Tortoise.close_connections()


def create_tortoise_storage() -> TortoiseStorage:
    """Repositories over an already initialized Tortoise (see ``init_database``)."""
    return TortoiseStorage(
        sites=TortoiseSiteRepository(),
        pages=TortoisePageRepository(),
        lemmas=TortoiseLemmaRepository(),
        indexes=TortoiseIndexRepository(),
    )
