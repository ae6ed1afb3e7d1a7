"""Shared test fixtures for the supertool_gateway test suite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from supertool_gateway.errors import ErrorCode, GatewayError
from supertool_gateway.gateway import CacheGateway
from supertool_gateway.models.http import GatewayRequest, GatewayResponse
from supertool_gateway.storage import CacheStorage

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

ORIGIN = "https://super-tool.test"
MANIFEST = ["/", "/manifest.json"]


class FakeFetcher:
    """In-memory FetcherProtocol implementation.

    Unknown URLs behave as if the network were down. ``hold(url)`` returns an
    event that keeps fetches of that URL pending until it is set.
    """

    def __init__(self) -> None:
        self.routes: dict[str, GatewayResponse | GatewayError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[GatewayRequest] = []

    def respond(
        self,
        url: str,
        body: bytes = b"",
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.routes[url] = GatewayResponse(status=status, headers=headers or {}, body=body)

    def fail(self, url: str) -> None:
        self.routes[url] = GatewayError(
            code=ErrorCode.NETWORK_UNAVAILABLE,
            message=f"Network error fetching {url}",
            suggestion="",
            recoverable=True,
        )

    def hold(self, url: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[url] = gate
        return gate

    def calls_for(self, url: str) -> int:
        return sum(1 for call in self.calls if call.url == url)

    async def fetch(self, request: GatewayRequest) -> GatewayResponse:
        self.calls.append(request)
        gate = self.gates.get(request.url)
        if gate is not None:
            await gate.wait()

        outcome = self.routes.get(request.url)
        if outcome is None:
            outcome = GatewayError(
                code=ErrorCode.NETWORK_UNAVAILABLE,
                message=f"No route for {request.url}",
                suggestion="",
                recoverable=True,
            )
        if isinstance(outcome, GatewayError):
            raise outcome
        return outcome.clone()


@pytest.fixture()
async def storage() -> AsyncGenerator[CacheStorage, None]:
    """CacheStorage on an in-memory SQLite database."""
    async with aiosqlite.connect(":memory:") as db:
        cache_storage = CacheStorage(db)
        await cache_storage.init_db()
        yield cache_storage


@pytest.fixture()
def fetcher() -> FakeFetcher:
    fake = FakeFetcher()
    fake.respond(f"{ORIGIN}/", b"<html>home</html>", headers={"content-type": "text/html"})
    fake.respond(f"{ORIGIN}/manifest.json", b'{"name":"Super-Tool"}')
    return fake


@pytest.fixture()
def make_gateway(
    storage: CacheStorage, fetcher: FakeFetcher
) -> Callable[..., CacheGateway]:
    def _make(version: str = "super-tool-v1", manifest: list[str] | None = None) -> CacheGateway:
        return CacheGateway(
            storage,
            fetcher,
            version=version,
            manifest=MANIFEST if manifest is None else manifest,
            origin=ORIGIN,
        )

    return _make


@pytest.fixture()
async def gateway(
    make_gateway: Callable[..., CacheGateway],
) -> AsyncGenerator[CacheGateway, None]:
    """Gateway for super-tool-v1, installed and activated."""
    active = make_gateway()
    await active.handle_install()
    await active.handle_activate()
    yield active
    await active.aclose()
