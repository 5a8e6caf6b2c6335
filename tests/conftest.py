import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import pytest

# make the project root and the tests directory importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from admin_console.config import ConsoleConfig
from admin_console.console import open_console
from fake_backend import create_fake_backend

API_URL = "http://testserver/api/admin"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's ADMIN_CONSOLE_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("ADMIN_CONSOLE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    return ConsoleConfig(
        api_url=API_URL,
        state_dir=tmp_path / "state",
        stats_interval=0.01,
        keys_interval=0.02,
    )


@pytest.fixture
def backend():
    """(app, state) for the fake admin backend."""
    return create_fake_backend()


@pytest.fixture
def connect(config, backend):
    """Async context manager yielding a Console wired to the fake backend."""
    app, _ = backend

    @asynccontextmanager
    async def _connect(persist: bool = True, cfg: ConsoleConfig = None):
        async with open_console(
            cfg or config,
            persist=persist,
            transport=httpx.ASGITransport(app=app),
        ) as console:
            yield console

    return _connect
