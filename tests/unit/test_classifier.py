"""Unit tests for supertool_gateway.classifier."""

from __future__ import annotations

import pytest

from supertool_gateway.classifier import RequestClass, RequestClassifier, is_same_origin

ORIGIN = "https://super-tool.test"


@pytest.fixture()
def classifier() -> RequestClassifier:
    return RequestClassifier()


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


class TestStaticAssets:
    @pytest.mark.parametrize(
        "ext", ["js", "css", "png", "jpg", "jpeg", "gif", "svg", "woff", "woff2"]
    )
    def test_asset_extensions(self, classifier: RequestClassifier, ext: str) -> None:
        assert classifier.classify(f"{ORIGIN}/assets/file.{ext}") is RequestClass.STATIC_ASSET

    def test_next_build_output(self, classifier: RequestClassifier) -> None:
        url = f"{ORIGIN}/_next/static/chunks/main-abc123"
        assert classifier.classify(url) is RequestClass.STATIC_ASSET

    def test_generic_static_directory(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/static/fonts/inter") is RequestClass.STATIC_ASSET

    def test_query_string_does_not_hide_extension(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/app.js?v=3") is RequestClass.STATIC_ASSET

    def test_extension_match_is_case_sensitive(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/logo.PNG") is RequestClass.NAVIGABLE_PAGE

    def test_extension_must_be_a_suffix(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/docs/js-guide") is RequestClass.NAVIGABLE_PAGE


class TestApiCalls:
    def test_api_segment(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/api/currency/rates") is RequestClass.API_CALL

    def test_api_prefix_without_trailing_slash_is_a_page(
        self, classifier: RequestClassifier
    ) -> None:
        assert classifier.classify(f"{ORIGIN}/api") is RequestClass.NAVIGABLE_PAGE

    def test_api_segment_in_query_is_ignored(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/tools?next=/api/x") is RequestClass.NAVIGABLE_PAGE


class TestPrecedence:
    def test_static_extension_under_api_path(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/api/files/chart.png") is RequestClass.STATIC_ASSET

    def test_static_directory_under_api_path(self, classifier: RequestClassifier) -> None:
        assert classifier.classify(f"{ORIGIN}/api/static/data") is RequestClass.STATIC_ASSET

    def test_page_slug_containing_static_segment(self, classifier: RequestClassifier) -> None:
        """Known edge case: substring match classifies this page as a static asset."""
        url = f"{ORIGIN}/blog/static/site-generators"
        assert classifier.classify(url) is RequestClass.STATIC_ASSET

    @pytest.mark.parametrize("path", ["/", "/bmi-calculator", "/tools/pdf-compressor"])
    def test_pages_default(self, classifier: RequestClassifier, path: str) -> None:
        assert classifier.classify(f"{ORIGIN}{path}") is RequestClass.NAVIGABLE_PAGE


class TestCustomRules:
    def test_custom_segments_and_extensions(self) -> None:
        classifier = RequestClassifier(
            static_segments=["/assets/"],
            static_extensions=[".webp"],
            api_segments=["/rpc/"],
        )
        assert classifier.classify(f"{ORIGIN}/assets/app") is RequestClass.STATIC_ASSET
        assert classifier.classify(f"{ORIGIN}/img/photo.webp") is RequestClass.STATIC_ASSET
        assert classifier.classify(f"{ORIGIN}/rpc/convert") is RequestClass.API_CALL
        assert classifier.classify(f"{ORIGIN}/static/app") is RequestClass.NAVIGABLE_PAGE
        assert classifier.classify(f"{ORIGIN}/app.js") is RequestClass.NAVIGABLE_PAGE


# ---------------------------------------------------------------------------
# is_same_origin
# ---------------------------------------------------------------------------


class TestIsSameOrigin:
    def test_same_origin(self) -> None:
        assert is_same_origin(f"{ORIGIN}/page", ORIGIN)

    def test_explicit_default_port(self) -> None:
        assert is_same_origin("https://super-tool.test:443/page", ORIGIN)

    def test_host_case_insensitive(self) -> None:
        assert is_same_origin("https://SUPER-TOOL.test/page", ORIGIN)

    def test_different_host(self) -> None:
        assert not is_same_origin("https://cdn.example.com/lib.js", ORIGIN)

    def test_different_scheme(self) -> None:
        assert not is_same_origin("http://super-tool.test/page", ORIGIN)

    def test_different_port(self) -> None:
        assert not is_same_origin("https://super-tool.test:8443/page", ORIGIN)

    def test_prefix_lookalike_host(self) -> None:
        assert not is_same_origin("https://super-tool.test.evil.com/page", ORIGIN)
