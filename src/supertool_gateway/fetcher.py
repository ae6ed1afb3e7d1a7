"""Network fetch capability.

All network I/O made on behalf of the gateway goes through a single Fetcher
instance. The Fetcher receives an httpx.AsyncClient via constructor
injection; the lifespan owns the client lifecycle.

A fetch is a single attempt. Only transport-level failures reject; any HTTP
status, including 4xx and 5xx, is a response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from supertool_gateway.classifier import is_same_origin
from supertool_gateway.errors import ErrorCode, GatewayError
from supertool_gateway.models.http import GatewayRequest, GatewayResponse

if TYPE_CHECKING:
    from supertool_gateway.config import UpstreamSettings

log = structlog.get_logger()

# Connection-level headers plus those invalidated by httpx decoding the body
STRIPPED_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)


def build_http_client(settings: UpstreamSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        # Redirects are answered to the caller, not followed here
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": "supertool-gateway/1.0"},
        limits=httpx.Limits(
            max_connections=100,
            max_keepalive_connections=20,
        ),
    )


def filter_headers(headers: httpx.Headers | dict[str, str]) -> dict[str, str]:
    """Lower-case header names and drop hop-by-hop and encoding headers."""
    return {
        name.lower(): value
        for name, value in headers.items()
        if name.lower() not in STRIPPED_HEADERS
    }


def to_gateway_response(response: httpx.Response) -> GatewayResponse:
    return GatewayResponse(
        status=response.status_code,
        headers=filter_headers(response.headers),
        body=response.content,
    )


class Fetcher:
    """Forwards gateway requests over HTTP, optionally to an upstream origin."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        origin: str,
        upstream_url: str | None = None,
    ) -> None:
        self._client = client
        self._origin = origin
        self._upstream = httpx.URL(upstream_url) if upstream_url else None

    def resolve(self, url: str) -> httpx.URL:
        """Map a public same-origin URL onto the upstream server, if one is configured."""
        target = httpx.URL(url)
        if self._upstream is None or not is_same_origin(url, self._origin):
            return target
        return target.copy_with(
            scheme=self._upstream.scheme,
            host=self._upstream.host,
            port=self._upstream.port,
        )

    async def fetch(self, request: GatewayRequest) -> GatewayResponse:
        """Perform one network attempt.

        Raises GatewayError(NETWORK_UNAVAILABLE) when the request cannot be
        completed at the transport level.
        """
        target = self.resolve(request.url)
        try:
            response = await self._client.request(
                request.method,
                target,
                headers=filter_headers(request.headers),
                content=request.body or None,
            )
        except httpx.HTTPError as exc:
            log.warning("fetch_failed", url=request.url, target=str(target), error=str(exc))
            raise GatewayError(
                code=ErrorCode.NETWORK_UNAVAILABLE,
                message=f"Network error fetching {request.url}: {exc}",
                suggestion="The upstream server may be offline or unreachable.",
                recoverable=True,
            ) from exc

        log.debug(
            "fetch_complete",
            method=request.method,
            url=request.url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return to_gateway_response(response)
