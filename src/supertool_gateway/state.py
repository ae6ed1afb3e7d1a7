"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan
context manager) and stored on ``app.state`` for the proxy endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from supertool_gateway.config import Settings
    from supertool_gateway.gateway import CacheGateway
    from supertool_gateway.protocols import CacheStorageProtocol, FetcherProtocol


@dataclass
class AppState:
    """Holds all shared runtime state for the proxy."""

    settings: Settings
    gateway: CacheGateway
    fetcher: FetcherProtocol
    storage: CacheStorageProtocol | None = None
    http_client: httpx.AsyncClient | None = None
