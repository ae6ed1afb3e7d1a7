"""Reverse-proxy entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState in the Starlette lifespan, running install then activate
- Route every incoming request through CacheGateway.handle_fetch
- Start uvicorn
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from supertool_gateway import __version__
from supertool_gateway.classifier import RequestClassifier
from supertool_gateway.config import Settings
from supertool_gateway.errors import GatewayError
from supertool_gateway.fetcher import Fetcher, build_http_client, filter_headers
from supertool_gateway.gateway import CacheGateway
from supertool_gateway.models.http import GatewayRequest
from supertool_gateway.state import AppState
from supertool_gateway.storage import CacheStorage

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

log = structlog.get_logger()

PROXIED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def build_gateway(settings: Settings, storage: CacheStorage, fetcher: Fetcher) -> CacheGateway:
    routing = settings.routing
    return CacheGateway(
        storage,
        fetcher,
        version=settings.gateway.version,
        manifest=settings.gateway.manifest,
        origin=settings.gateway.origin,
        classifier=RequestClassifier(
            static_segments=routing.static_segments,
            static_extensions=routing.static_extensions,
            api_segments=routing.api_segments,
        ),
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
    """Create and tear down all shared resources for the proxy's lifetime."""
    settings: Settings = app.state.settings
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        cache_version=settings.gateway.version,
        upstream=settings.upstream.url,
    )

    db_path = Path(settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    http_client = build_http_client(settings.upstream)

    try:
        storage = CacheStorage(db)
        await storage.init_db()

        fetcher = Fetcher(http_client, settings.gateway.origin, settings.upstream.url)
        gateway = build_gateway(settings, storage, fetcher)

        # A failed install aborts startup; the previous generation stays intact
        await gateway.handle_install()
        await gateway.handle_activate()

        app.state.gateway_state = AppState(
            settings=settings,
            gateway=gateway,
            fetcher=fetcher,
            storage=storage,
            http_client=http_client,
        )

        log.info("server_started", cache_version=gateway.version)
        yield
        await gateway.aclose()
    finally:
        await http_client.aclose()
        await db.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# Proxy endpoint
# ---------------------------------------------------------------------------


def _public_url(settings: Settings, request: Request) -> str:
    """Rebuild the request URL on the configured origin, ignoring the Host header."""
    url = settings.gateway.origin.rstrip("/") + request.url.path
    if request.url.query:
        url += "?" + request.url.query
    return url


async def proxy(request: Request) -> Response:
    state: AppState = request.app.state.gateway_state
    gateway_request = GatewayRequest(
        method=request.method,
        url=_public_url(state.settings, request),
        headers=filter_headers(request.headers),
        body=await request.body(),
    )

    try:
        response = await state.gateway.handle_fetch(gateway_request)
        if response is None:
            response = await state.fetcher.fetch(gateway_request)
    except GatewayError as exc:
        log.warning(
            "proxy_error",
            url=gateway_request.url,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return JSONResponse(exc.to_dict(), status_code=502)

    return Response(content=response.body, status_code=response.status, headers=response.headers)


def build_app(settings: Settings | None = None) -> Starlette:
    app = Starlette(
        routes=[Route("/{path:path}", proxy, methods=PROXIED_METHODS)],
        lifespan=lifespan,
    )
    app.state.settings = settings or Settings()
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    uvicorn.run(
        build_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
