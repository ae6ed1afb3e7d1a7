"""Protocol interfaces for the capabilities injected into CacheGateway.

The gateway references these protocols, not the concrete implementations.
This allows:
- Tests to use lightweight in-memory fetchers
- Other storage backends to be swapped in without touching the policy code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from supertool_gateway.models.http import GatewayRequest, GatewayResponse


class CacheHandleProtocol(Protocol):
    """One named cache generation."""

    name: str

    async def match(self, request: GatewayRequest) -> GatewayResponse | None: ...

    async def put(self, request: GatewayRequest, response: GatewayResponse) -> None: ...

    async def put_all(
        self, entries: Sequence[tuple[GatewayRequest, GatewayResponse]]
    ) -> None: ...


class CacheStorageProtocol(Protocol):
    """The set of named cache generations."""

    async def open(self, name: str) -> CacheHandleProtocol: ...

    async def keys(self) -> list[str]: ...

    async def delete(self, name: str) -> bool: ...

    async def has(self, name: str) -> bool: ...


class FetcherProtocol(Protocol):
    """Single-attempt network fetch. Rejects with GatewayError on network failure."""

    async def fetch(self, request: GatewayRequest) -> GatewayResponse: ...
