from __future__ import annotations

from supertool_gateway.models.http import GatewayRequest, GatewayResponse

__all__ = [
    "GatewayRequest",
    "GatewayResponse",
]
