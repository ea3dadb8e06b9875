from typing import Callable, Sequence

from searchengine.domain import utc_now
from searchengine.schemas import (
    DetailedStatisticsItem,
    StatisticsData,
    StatisticsResponse,
    TotalStatistics,
)
from searchengine.storage.base import Storage
from searchengine.utils.config_loader import SiteConfig
from searchengine.utils.url_utils import canonicalize


NOT_INDEXED = "NOT INDEXED"


def _epoch_ms(moment) -> int:
    return int(moment.timestamp() * 1000)


class StatisticsService:
    """Per configured site counts and crawl state."""

    def __init__(
        self,
        storage: Storage,
        sites: Sequence[SiteConfig],
        is_indexing: Callable[[], bool],
    ):
        self.storage = storage
        self.sites = list(sites)
        self.is_indexing = is_indexing

    async def statistics(self) -> StatisticsResponse:
        detailed = [await self._item(site_config) for site_config in self.sites]
        total = TotalStatistics(
            sites=len(self.sites),
            pages=sum(item.pages for item in detailed),
            lemmas=sum(item.lemmas for item in detailed),
            indexing=self.is_indexing(),
        )
        return StatisticsResponse(statistics=StatisticsData(total=total, detailed=detailed))

    async def _item(self, site_config: SiteConfig) -> DetailedStatisticsItem:
        url = canonicalize(site_config.url)
        site = await self.storage.sites.find_by_url(url)
        if site is None:
            return DetailedStatisticsItem(
                url=url,
                name=site_config.name,
                status=NOT_INDEXED,
                status_time=_epoch_ms(utc_now()),
            )

        return DetailedStatisticsItem(
            url=url,
            name=site_config.name,
            status=site.status.value,
            status_time=_epoch_ms(site.status_time),
            error=site.last_error or "",
            pages=await self.storage.pages.count_by_site(site),
            lemmas=await self.storage.lemmas.count_by_site(site),
        )
