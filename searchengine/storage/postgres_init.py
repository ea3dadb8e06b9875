"""Database bootstrap for the Tortoise backend.

PostgreSQL DSNs arrive in several spellings (``postgresql+psycopg2://``,
``postgres://``, ``postgresql://``); Tortoise wants ``asyncpg://``.
"""

from __future__ import annotations

from loguru import logger
from tortoise import Tortoise

from searchengine.storage.tortoise_storage import TortoiseStorage, create_tortoise_storage


MODELS_MODULE = "searchengine.storage.models"


def to_tortoise_url(url: str) -> str:
    """Convert a PostgreSQL DSN to the ``asyncpg://`` scheme; other URLs pass through."""

    if url.startswith("postgresql+"):
        url = "postgresql://" + url.split("://", 1)[1]
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "asyncpg://" + url[len(prefix):]
    return url


async def init_database(db_url: str, *, generate_schemas: bool = True) -> TortoiseStorage:
    """
    Connect Tortoise to ``db_url`` and create missing tables.
    """
    logger.info("Initializing database and ORM models...")

    await Tortoise.init(
        db_url=to_tortoise_url(db_url),
        modules={"models": [MODELS_MODULE]},
    )

    if generate_schemas:
        await Tortoise.generate_schemas(safe=True)
        logger.info("Search index tables created or verified.")

    return create_tortoise_storage()
