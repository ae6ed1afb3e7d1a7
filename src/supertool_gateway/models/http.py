from __future__ import annotations

from pydantic import BaseModel, Field


class GatewayRequest(BaseModel):
    """An intercepted request. Only ``GET`` requests are ever cached."""

    method: str = "GET"
    url: str  # Absolute URL
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @property
    def cache_key(self) -> tuple[str, str]:
        """Request identity in a cache generation: method plus URL without fragment."""
        return self.method.upper(), self.url.split("#", 1)[0]


class GatewayResponse(BaseModel):
    """A fully read response. Header names are lower-case."""

    status: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def clone(self) -> GatewayResponse:
        return self.model_copy(deep=True)
