import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from searchengine.utils.config_loader import load_environment


@pytest.fixture(autouse=True)
def load_dotenv_defaults(monkeypatch):
    """Ensure .env defaults are available for every test."""

    # Clear key variables so tests always use the config file baseline unless
    # they explicitly override values via monkeypatch.
    for key in [
        "DATABASE_URL",
        "POSTGRES_USER",
        "POSTGRES_PASSWORD",
        "POSTGRES_HOST",
        "POSTGRES_PORT",
        "POSTGRES_DB",
        "SEARCHENGINE_CONFIG",
        "CRAWLER_USER_AGENT",
        "CRAWLER_REFERRER",
        "API_PORT",
        "LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)

    load_environment(override=True)

    yield

    for key in list(os.environ.keys()):
        if key.startswith("TEST_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def anyio_backend():
    return "asyncio"
