"""httpx transport that routes a client's own requests through a CacheGateway.

Mount it on an ``httpx.AsyncClient`` to give in-process callers the same
offline behaviour the proxy gives browsers. Requests the gateway does not
intercept are handed to the passthrough transport unchanged.

The gateway's Fetcher must use a different client: routing the gateway's own
fetches through this transport would recurse.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from supertool_gateway.errors import GatewayError
from supertool_gateway.models.http import GatewayRequest

if TYPE_CHECKING:
    from supertool_gateway.gateway import CacheGateway


class GatewayTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        gateway: CacheGateway,
        passthrough: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._gateway = gateway
        self._passthrough = passthrough or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        gateway_request = GatewayRequest(
            method=request.method,
            url=str(request.url),
            headers=dict(request.headers),
            body=body,
        )

        try:
            response = await self._gateway.handle_fetch(gateway_request)
        except GatewayError as exc:
            # Surfaces to the caller as an ordinary failed fetch
            raise httpx.NetworkError(exc.message, request=request) from exc

        if response is None:
            return await self._passthrough.handle_async_request(request)

        return httpx.Response(
            status_code=response.status,
            headers=response.headers,
            content=response.body,
            request=request,
        )

    async def aclose(self) -> None:
        await self._gateway.aclose()
        await self._passthrough.aclose()
