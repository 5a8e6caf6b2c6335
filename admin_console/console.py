"""Wiring for one console process: store, gateway, API facade and session manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx

from .api.client import GatewayClient
from .api.endpoints import AdminApi
from .config import ConsoleConfig
from .kv.panel import KeyValuePanel
from .session.manager import SessionManager
from .session.persistence import SessionStore
from .session.verifier import build_verifier


@dataclass
class Console:
    """Everything a UI layer needs, sharing one session store."""
    config: ConsoleConfig
    store: SessionStore
    client: GatewayClient
    api: AdminApi
    sessions: SessionManager

    def panel(self, **kwargs) -> KeyValuePanel:
        return KeyValuePanel.from_config(self.config, self.api, self.sessions, **kwargs)


@asynccontextmanager
async def open_console(
    config: ConsoleConfig,
    *,
    persist: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[Console]:
    """Build the object graph; ``persist=False`` keeps session and cookies in memory."""
    store = SessionStore(config.session_file if persist else None)
    client = GatewayClient(
        config,
        store,
        cookie_file=config.cookie_file if persist else None,
        transport=transport,
    )
    api = AdminApi(client)
    sessions = SessionManager(api, store, build_verifier(config, api))
    try:
        yield Console(config=config, store=store, client=client, api=api, sessions=sessions)
    finally:
        sessions.close()
        await client.close()
