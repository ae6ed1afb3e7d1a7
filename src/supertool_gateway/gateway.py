"""Offline cache gateway.

CacheGateway owns the caching policy for the Super-Tool application shell:

- install:  pre-warm the generation named by ``version`` with the manifest
- activate: delete every other generation, then start intercepting requests
- fetch:    classify the request and answer it with the matching strategy

    static-asset    cache-first
    api-call        network-first, JSON offline signal on network failure
    navigable-page  stale-while-revalidate

Storage and network are injected (CacheStorageProtocol, FetcherProtocol);
hosting adapters (server.py, transport.py) wire the three handlers to
incoming traffic. Nothing is retried.
"""

from __future__ import annotations

import asyncio
import json
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from supertool_gateway.classifier import RequestClass, RequestClassifier, is_same_origin
from supertool_gateway.errors import ErrorCode, GatewayError
from supertool_gateway.models.http import GatewayRequest, GatewayResponse

if TYPE_CHECKING:
    from collections.abc import Coroutine, Sequence
    from typing import Any

    from supertool_gateway.protocols import (
        CacheHandleProtocol,
        CacheStorageProtocol,
        FetcherProtocol,
    )

log = structlog.get_logger()

OFFLINE_BODY = {"error": "Network unavailable", "offline": True}


def offline_response() -> GatewayResponse:
    """Structured signal returned for api-call requests when the network is down."""
    return GatewayResponse(
        status=200,
        headers={"content-type": "application/json"},
        body=json.dumps(OFFLINE_BODY, separators=(",", ":")).encode("utf-8"),
    )


class GatewayPhase(StrEnum):
    NEW = "new"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class CacheGateway:
    def __init__(
        self,
        storage: CacheStorageProtocol,
        fetcher: FetcherProtocol,
        *,
        version: str,
        manifest: Sequence[str],
        origin: str,
        classifier: RequestClassifier | None = None,
    ) -> None:
        self._storage = storage
        self._fetcher = fetcher
        self.version = version
        self.manifest = tuple(manifest)
        self.origin = origin.rstrip("/")
        self._classifier = classifier or RequestClassifier()
        self.phase = GatewayPhase.NEW
        self._background: set[asyncio.Task] = set()
        self._cache: CacheHandleProtocol | None = None

    @property
    def controlling(self) -> bool:
        """True once activation has claimed clients."""
        return self.phase is GatewayPhase.ACTIVATED

    @property
    def _current_cache(self) -> CacheHandleProtocol:
        # Set by a successful install and reused for every intercepted request
        assert self._cache is not None
        return self._cache

    def _absolute(self, url: str) -> str:
        return url if "://" in url else f"{self.origin}/{url.lstrip('/')}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def handle_install(self) -> None:
        """Populate the current generation with every manifest URL.

        All manifest fetches must succeed with a 2xx status or nothing is
        written: the error propagates and the gateway becomes redundant.
        """
        self.phase = GatewayPhase.INSTALLING
        log.info("gateway_installing", version=self.version, manifest_size=len(self.manifest))

        created = False
        try:
            created = not await self._storage.has(self.version)
            cache = await self._storage.open(self.version)
            requests = [GatewayRequest(url=self._absolute(url)) for url in self.manifest]

            # Every fetch settles before the outcome is judged
            outcomes = await asyncio.gather(
                *(self._fetcher.fetch(r) for r in requests), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            failed = [req.url for req, resp in zip(requests, outcomes) if not resp.ok]
            if failed:
                raise GatewayError(
                    code=ErrorCode.MANIFEST_FETCH_FAILED,
                    message=f"Manifest fetch returned an error status: {', '.join(failed)}",
                    suggestion="Make sure every manifest URL is served by the upstream app.",
                    recoverable=True,
                )
            await cache.put_all(list(zip(requests, outcomes)))
        except Exception as exc:
            self.phase = GatewayPhase.REDUNDANT
            code = exc.code if isinstance(exc, GatewayError) else type(exc).__name__
            log.error("gateway_install_failed", version=self.version, code=code)
            if created:
                await self._discard_generation()
            if isinstance(exc, GatewayError) and exc.code is ErrorCode.NETWORK_UNAVAILABLE:
                raise GatewayError(
                    code=ErrorCode.MANIFEST_FETCH_FAILED,
                    message=f"Install of {self.version!r} failed: {exc.message}",
                    suggestion=exc.suggestion,
                    recoverable=True,
                ) from exc
            raise

        self._cache = cache
        self.phase = GatewayPhase.INSTALLED
        log.info("gateway_installed", version=self.version, cached=len(requests))

    async def _discard_generation(self) -> None:
        try:
            await self._storage.delete(self.version)
        except GatewayError:
            log.warning("gateway_install_cleanup_failed", version=self.version, exc_info=True)

    async def handle_activate(self) -> None:
        """Delete every generation except the current one, then claim clients."""
        if self.phase not in (GatewayPhase.INSTALLED, GatewayPhase.ACTIVATED):
            raise GatewayError(
                code=ErrorCode.INVALID_LIFECYCLE_STATE,
                message=f"Cannot activate gateway in phase {self.phase!r}",
                suggestion="Call handle_install() and wait for it to succeed first.",
            )
        self.phase = GatewayPhase.ACTIVATING

        stale = [name for name in await self._storage.keys() if name != self.version]
        for name in stale:
            await self._storage.delete(name)

        self.phase = GatewayPhase.ACTIVATED
        log.info("gateway_activated", version=self.version, deleted_generations=stale)

    # ------------------------------------------------------------------
    # Fetch dispatch
    # ------------------------------------------------------------------

    async def handle_fetch(self, request: GatewayRequest) -> GatewayResponse | None:
        """Answer ``request`` from the matching strategy.

        Returns ``None`` when the gateway does not intervene; the host must
        then forward the request untouched.
        """
        if not self.controlling:
            return None
        if not is_same_origin(request.url, self.origin):
            log.debug("fetch_passthrough", reason="cross_origin", url=request.url)
            return None

        request_class = self._classifier.classify(request.url)
        if request_class is RequestClass.API_CALL:
            return await self._network_first(request)

        # Only GET requests are ever read from or written to the cache
        if request.method.upper() != "GET":
            log.debug("fetch_passthrough", reason="method", method=request.method)
            return None

        if request_class is RequestClass.STATIC_ASSET:
            return await self._cache_first(request)
        return await self._stale_while_revalidate(request)

    async def _cache_first(self, request: GatewayRequest) -> GatewayResponse:
        cached = await self._current_cache.match(request)
        if cached is not None:
            log.debug("cache_hit", strategy="cache_first", url=request.url)
            return cached

        response = await self._fetcher.fetch(request)
        if response.status == 200:
            await self._current_cache.put(request, response.clone())
        return response

    async def _network_first(self, request: GatewayRequest) -> GatewayResponse:
        try:
            return await self._fetcher.fetch(request)
        except GatewayError as exc:
            if exc.code is not ErrorCode.NETWORK_UNAVAILABLE:
                raise
            log.warning("api_offline_fallback", url=request.url)
            return offline_response()

    async def _stale_while_revalidate(self, request: GatewayRequest) -> GatewayResponse:
        cached = await self._current_cache.match(request)
        network = self._spawn(self._revalidate(request))

        if cached is None:
            return await network

        log.debug("cache_hit", strategy="stale_while_revalidate", url=request.url)
        network.add_done_callback(self._log_revalidation_failure)
        return cached

    async def _revalidate(self, request: GatewayRequest) -> GatewayResponse:
        response = await self._fetcher.fetch(request)
        if response.status == 200:
            self._spawn(self._current_cache.put(request, response.clone()))
        return response

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    @staticmethod
    def _log_revalidation_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("revalidation_failed", error=str(exc))

    async def wait_for_background_tasks(self) -> None:
        """Wait until every detached revalidation and cache write has settled."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def aclose(self) -> None:
        await self.wait_for_background_tasks()
