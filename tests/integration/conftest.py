"""Integration test fixtures.

Provides the proxy app wired to an activated gateway over in-memory SQLite
and the in-memory fetcher from tests/conftest.py. The Starlette lifespan is
not run; AppState is attached to ``app.state`` directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from supertool_gateway.config import Settings
from supertool_gateway.server import build_app
from supertool_gateway.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.applications import Starlette

    from supertool_gateway.gateway import CacheGateway
    from supertool_gateway.storage import CacheStorage

ORIGIN = "https://super-tool.test"


@pytest.fixture()
def settings() -> Settings:
    return Settings(gateway={"origin": ORIGIN, "manifest": ["/", "/manifest.json"]})


@pytest.fixture()
def app(settings: Settings, gateway: CacheGateway, fetcher, storage: CacheStorage) -> Starlette:
    proxy_app = build_app(settings)
    proxy_app.state.gateway_state = AppState(
        settings=settings,
        gateway=gateway,
        fetcher=fetcher,
        storage=storage,
    )
    return proxy_app


@pytest.fixture()
async def client(app: Starlette) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Client talking to the proxy in-process. The Host header deliberately differs."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://localhost:8080",
    ) as proxy_client:
        yield proxy_client
