from aiohttp import web
from loguru import logger

from searchengine.coordinator import CrawlCoordinator
from searchengine.monitoring.metrics import metrics_handler
from searchengine.search import SearchEngine
from searchengine.statistics import StatisticsService


class ApiHandlers:
    def __init__(
        self,
        coordinator: CrawlCoordinator,
        search_engine: SearchEngine,
        statistics: StatisticsService,
    ):
        self.coordinator = coordinator
        self.search_engine = search_engine
        self.statistics_service = statistics

    async def statistics(self, request: web.Request) -> web.Response:
        response = await self.statistics_service.statistics()
        return web.json_response(response.to_json())

    async def start_indexing(self, request: web.Request) -> web.Response:
        response = await self.coordinator.start()
        return web.json_response(response.to_json())

    async def stop_indexing(self, request: web.Request) -> web.Response:
        response = await self.coordinator.stop()
        return web.json_response(response.to_json())

    async def index_page(self, request: web.Request) -> web.Response:
        url = request.query.get("url")
        if not url:
            form = await request.post()
            url = form.get("url")
        if not url:
            raise web.HTTPBadRequest(reason="url parameter is required")

        response = await self.coordinator.index_one_page(str(url))
        return web.json_response(response.to_json())

    async def search(self, request: web.Request) -> web.Response:
        query = request.query.get("query", "")
        site = request.query.get("site", "")
        response = await self.search_engine.search(query, site)
        return web.json_response(response.to_json())


def create_app(
    coordinator: CrawlCoordinator,
    search_engine: SearchEngine,
    statistics: StatisticsService,
    *,
    metrics_enabled: bool = True,
) -> web.Application:
    handlers = ApiHandlers(coordinator, search_engine, statistics)

    app = web.Application()
    app.router.add_get("/api/statistics", handlers.statistics)
    app.router.add_get("/api/startIndexing", handlers.start_indexing)
    app.router.add_get("/api/stopIndexing", handlers.stop_indexing)
    app.router.add_post("/api/indexPage", handlers.index_page)
    app.router.add_get("/api/search", handlers.search)
    if metrics_enabled:
        app.router.add_get("/metrics", metrics_handler)
    return app


async def start_api_server(app: web.Application, host: str = "0.0.0.0", port: int = 8080):
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"API listening on http://{host}:{port}")

    return runner, site
