import asyncio
import time
from dataclasses import dataclass, field
from typing import List

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from searchengine.errors import NetworkError
from searchengine.monitoring.metrics import (
    FAILED_REQUESTS,
    REQUEST_COUNT,
    REQUEST_LATENCY,
)
from searchengine.parsing.html_extractor import extract_links, parse_document
from searchengine.utils.url_utils import get_domain


DEFAULT_CRAWL_DELAY = 0.15


@dataclass
class FetchResult:
    url: str
    status_code: int
    content: str
    document: BeautifulSoup
    links: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, url: str, status_code: int, content: str, base_url: str | None = None) -> "FetchResult":
        document = parse_document(content)
        return cls(
            url=url,
            status_code=status_code,
            content=content,
            document=document,
            links=extract_links(base_url or url, document),
        )


class Fetcher:
    """Single paced GET with the configured identity headers.

    Any HTTP status is returned as data; only I/O failures raise
    ``NetworkError``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        user_agent: str,
        referrer: str,
        delay: float = DEFAULT_CRAWL_DELAY,
    ):
        self.client = client
        self.user_agent = user_agent
        self.referrer = referrer
        self.delay = delay

    async def fetch(self, url: str) -> FetchResult:
        site_label = get_domain(url)

        await asyncio.sleep(self.delay)

        REQUEST_COUNT.labels(site=site_label).inc()
        start = time.perf_counter()
        try:
            resp = await self.client.get(
                url,
                headers={
                    "User-Agent": self.user_agent,
                    "Referer": self.referrer,
                    "Accept": "*/*",
                },
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            FAILED_REQUESTS.labels(site=site_label).inc()
            logger.warning(f"[{site_label}] Fetch failed for {url}: {exc!r}")
            raise NetworkError(url, exc) from exc
        finally:
            REQUEST_LATENCY.labels(site=site_label).observe(time.perf_counter() - start)

        logger.debug(f"[{site_label}] GET {url} -> {resp.status_code}")
        return FetchResult.parse(url, resp.status_code, resp.text or "", base_url=str(resp.url))
