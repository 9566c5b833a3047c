"""Tests for the website content fetcher."""

import httpx
import pytest

from company_classifier.errors import FetchError, FetchFailureReason
from company_classifier.services.fetcher import ContentFetcher, is_html_content, validate_content

URL = "https://www.acme.com"
PAGE = "<!DOCTYPE html><html><head><title>Acme</title></head><body>" + "a" * 450 + "</body></html>"


def _fetcher(handler, retries=2) -> ContentFetcher:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ContentFetcher(retries=retries, retry_delay=0, client=client)


class TestValidation:
    @pytest.mark.parametrize("content,expected", [
        ("<html><body>hi</body></html>", True),
        ("<!DOCTYPE html>", True),
        ("<HEAD></HEAD>", True),
        ('{"json": true}', False),
        ("plain text", False),
    ])
    def test_is_html(self, content, expected):
        assert is_html_content(content) is expected

    def test_short_content_rejected(self):
        with pytest.raises(FetchError) as exc_info:
            validate_content("<html>" + "a" * 39, URL)
        assert exc_info.value.reason == FetchFailureReason.too_short

    def test_length_counts_bytes(self):
        # 6 ASCII bytes plus 47 two-byte characters is exactly 100 bytes
        validate_content("<html>" + "é" * 47, URL)

    def test_non_html_rejected(self):
        with pytest.raises(FetchError) as exc_info:
            validate_content("x" * 200, URL)
        assert exc_info.value.reason == FetchFailureReason.not_html


class TestContentFetcher:
    def test_success(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, text=PAGE))
        assert fetcher.fetch(URL) == PAGE

    def test_sends_browser_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, text=PAGE)

        _fetcher(handler).fetch(URL)
        assert "BusinessAnalyzer" in seen["user-agent"]
        assert seen["accept-language"].startswith("en-US")

    def test_45_byte_body_is_too_short(self):
        body = "<html><body>" + "a" * 19 + "</body></html>"
        assert len(body.encode()) == 45
        fetcher = _fetcher(lambda request: httpx.Response(200, text=body))
        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch(URL)
        assert exc_info.value.reason == FetchFailureReason.too_short

    def test_non_html_body(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, json={"data": "x" * 200}))
        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch(URL)
        assert exc_info.value.reason == FetchFailureReason.not_html

    def test_not_found_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, text="missing")

        with pytest.raises(FetchError) as exc_info:
            _fetcher(handler).fetch(URL)
        assert exc_info.value.reason == FetchFailureReason.bad_status
        assert exc_info.value.status == 404
        assert len(calls) == 1

    def test_server_error_retried_then_succeeds(self):
        responses = iter([httpx.Response(503), httpx.Response(200, text=PAGE)])
        fetcher = _fetcher(lambda request: next(responses))
        assert fetcher.fetch(URL) == PAGE

    def test_network_error_exhausts_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError) as exc_info:
            _fetcher(handler, retries=2).fetch(URL)
        assert exc_info.value.reason == FetchFailureReason.network
        assert len(calls) == 3

    def test_validation_failure_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="tiny")

        with pytest.raises(FetchError):
            _fetcher(handler).fetch(URL)
        assert len(calls) == 1

    def test_error_context(self):
        fetcher = _fetcher(lambda request: httpx.Response(500))
        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch(URL)
        ctx = exc_info.value.context()
        assert ctx["url"] == URL
        assert ctx["reason"] == "bad_status"
        assert ctx["status"] == 500
