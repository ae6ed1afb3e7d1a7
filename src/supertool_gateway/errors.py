from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    MANIFEST_FETCH_FAILED = "MANIFEST_FETCH_FAILED"
    CACHE_STORAGE_FAILED = "CACHE_STORAGE_FAILED"
    INVALID_LIFECYCLE_STATE = "INVALID_LIFECYCLE_STATE"


class GatewayError(Exception):
    """Raised for every expected failure crossing a gateway component boundary.

    Network and storage errors are translated into this type where they occur
    (fetcher, storage). The gateway only recovers NETWORK_UNAVAILABLE on
    api-call requests; everything else propagates to the hosting adapter.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
