from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    generate_latest,
    Counter,
    Gauge,
    Histogram,
)

# -------------------------
# Fetch metrics
# -------------------------

REQUEST_COUNT = Counter(
    "searchengine_requests_total",
    "Total HTTP requests sent by the crawler",
    ["site"],
)

FAILED_REQUESTS = Counter(
    "searchengine_failed_requests_total",
    "HTTP requests that ended with a network error",
    ["site"],
)

REQUEST_LATENCY = Histogram(
    "searchengine_request_latency_seconds",
    "Time to fetch a page",
    ["site"],
)

# -------------------------
# Index metrics
# -------------------------

INDEXED_PAGES = Counter(
    "searchengine_indexed_pages_total",
    "Pages written to the index",
    ["site"],
)

ACTIVE_CRAWLS = Gauge(
    "searchengine_active_crawls",
    "Site crawls currently running",
)

# -------------------------
# Search metrics
# -------------------------

SEARCH_QUERIES = Counter(
    "searchengine_search_queries_total",
    "Search requests by outcome",
    ["outcome"],
)


async def metrics_handler(request):
    data = generate_latest()

    # content type must not carry the charset parameter
    ctype = CONTENT_TYPE_LATEST.split(";")[0]

    return web.Response(
        body=data,
        content_type=ctype
    )
