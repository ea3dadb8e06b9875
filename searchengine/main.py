import asyncio
import signal

import httpx
from loguru import logger

# -------------------------------
# UVLOOP (used when installed)
# -------------------------------
try:
    import uvloop
    uvloop.install()
except ImportError:
    logger.warning("uvloop not available, using default asyncio loop.")

# -------------------------------
# INTERNAL IMPORTS
# -------------------------------
from searchengine.api.server import create_app, start_api_server
from searchengine.coordinator import CrawlCoordinator
from searchengine.fetcher import Fetcher
from searchengine.indexer import PageIndexer
from searchengine.parsing.lemmatizer import Lemmatizer
from searchengine.search import SearchEngine
from searchengine.statistics import StatisticsService
from searchengine.storage.base import Storage
from searchengine.storage.memory import create_memory_storage
from searchengine.storage.postgres_init import init_database
from searchengine.utils.config_loader import Config, load_config, load_environment
from searchengine.utils.logger import setup_logger


async def open_storage(config: Config) -> Storage:
    if config.storage_backend == "memory":
        logger.info("Using in-memory storage; the index is lost on exit.")
        return create_memory_storage()
    return await init_database(config.database_url)


# -------------------------------
# MAIN APPLICATION
# -------------------------------
async def main() -> None:
    load_environment()
    config = load_config()
    setup_logger(log_level=config.log_level, log_path=config.log_path)

    logger.info("Starting search engine...")

    # ---- Storage ----
    storage = await open_storage(config)

    # ---- Services ----
    client = httpx.AsyncClient(
        timeout=config.request_timeout,
        follow_redirects=True,
    )
    fetcher = Fetcher(
        client,
        user_agent=config.user_agent,
        referrer=config.referrer,
        delay=config.crawl_delay,
    )
    lemmatizer = Lemmatizer()
    indexer = PageIndexer(storage, lemmatizer)
    coordinator = CrawlCoordinator(
        storage,
        fetcher,
        indexer,
        config.sites,
        pool_size=config.resolved_pool_size(),
    )
    search_engine = SearchEngine(storage, lemmatizer)
    statistics = StatisticsService(storage, config.sites, lambda: coordinator.is_running)

    # ---- HTTP API ----
    app = create_app(
        coordinator,
        search_engine,
        statistics,
        metrics_enabled=config.metrics_enabled,
    )
    runner, _ = await start_api_server(app, host=config.api_host, port=config.api_port)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    logger.info(f"Search engine started with {len(config.sites)} configured site(s).")

    try:
        await shutdown_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        if coordinator.is_running:
            await coordinator.stop()

        await runner.shutdown()
        await runner.cleanup()

        await client.aclose()
        await storage.close()
        logger.info("Search engine stopped.")


def run() -> None:
    asyncio.run(main())


# -------------------------------
# ENTRYPOINT
# -------------------------------
if __name__ == "__main__":
    run()
