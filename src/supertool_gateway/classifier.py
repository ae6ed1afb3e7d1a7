"""Request classification.

Every same-origin request falls into exactly one class, checked in order:

  static-asset    build-output or generic static directory, or a web asset extension
  api-call        path contains an API segment
  navigable-page  everything else

Segment matching is a plain substring test anywhere in the path, so a page
whose slug contains ``/static/`` is classified as a static asset.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_STATIC_SEGMENTS: tuple[str, ...] = ("/_next/static/", "/static/")
DEFAULT_STATIC_EXTENSIONS: tuple[str, ...] = (
    "js",
    "css",
    "png",
    "jpg",
    "jpeg",
    "gif",
    "svg",
    "woff2",
    "woff",
)
DEFAULT_API_SEGMENTS: tuple[str, ...] = ("/api/",)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class RequestClass(StrEnum):
    STATIC_ASSET = "static-asset"
    API_CALL = "api-call"
    NAVIGABLE_PAGE = "navigable-page"


def _origin(url: httpx.URL) -> tuple[str, str, int | None]:
    scheme = url.scheme.lower()
    return scheme, url.host.lower(), url.port or _DEFAULT_PORTS.get(scheme)


def is_same_origin(url: str, origin: str) -> bool:
    """Compare scheme, host and effective port. ``http://a`` equals ``http://a:80``."""
    try:
        return _origin(httpx.URL(url)) == _origin(httpx.URL(origin))
    except httpx.InvalidURL:
        return False


class RequestClassifier:
    """Pure mapping from URL to RequestClass."""

    def __init__(
        self,
        static_segments: Iterable[str] = DEFAULT_STATIC_SEGMENTS,
        static_extensions: Iterable[str] = DEFAULT_STATIC_EXTENSIONS,
        api_segments: Iterable[str] = DEFAULT_API_SEGMENTS,
    ) -> None:
        self._static_segments = tuple(static_segments)
        self._static_suffixes = tuple(f".{ext.lstrip('.')}" for ext in static_extensions)
        self._api_segments = tuple(api_segments)

    def classify(self, url: str) -> RequestClass:
        path = httpx.URL(url).path

        if any(segment in path for segment in self._static_segments):
            return RequestClass.STATIC_ASSET
        # Case-sensitive: "/logo.PNG" is not a static asset
        if path.endswith(self._static_suffixes):
            return RequestClass.STATIC_ASSET
        if any(segment in path for segment in self._api_segments):
            return RequestClass.API_CALL
        return RequestClass.NAVIGABLE_PAGE
