"""Tests for the rate-limited detail page client."""

from __future__ import annotations

import httpx
import pytest

from src.services.crawl.detail_client import DetailPageClient

PAGE_HTML = "<ul><li>[법령] 아동수당법 (제4조)</li></ul>"


def _client(handler, **kwargs) -> DetailPageClient:
    kwargs.setdefault("delay_seconds", 0)
    kwargs.setdefault("retry_attempts", 1)
    return DetailPageClient(
        base_url="https://example.test/dtlEx",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestFetchDetail:
    @pytest.mark.asyncio
    async def test_success(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text=PAGE_HTML)

        async with _client(handler) as client:
            outcome = await client.fetch_detail("000000465790")

        assert outcome.success
        assert outcome.page_id == "000000465790"
        assert outcome.data is not None
        assert outcome.data.legal_basis[0].name == "아동수당법"
        assert seen == ["https://example.test/dtlEx/000000465790"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        async with _client(lambda request: httpx.Response(404)) as client:
            outcome = await client.fetch_detail("missing")

        assert not outcome.success
        assert outcome.error == "HTTP 404"
        assert outcome.data is None

    @pytest.mark.asyncio
    async def test_any_2xx_status_is_parsed(self):
        async with _client(lambda request: httpx.Response(203, text=PAGE_HTML)) as client:
            outcome = await client.fetch_detail("proxied")

        assert outcome.success
        assert outcome.data.legal_basis[0].name == "아동수당법"

    @pytest.mark.asyncio
    async def test_parse_failure(self):
        async with _client(lambda request: httpx.Response(200, text="<p>empty</p>")) as client:
            outcome = await client.fetch_detail("blank")

        assert not outcome.success
        assert outcome.error == "Parse failed"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            outcome = await client.fetch_detail("down")

        assert not outcome.success
        assert "connection refused" in outcome.error
        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, text=PAGE_HTML)

        async with _client(handler, retry_attempts=2, retry_wait_max=0.5) as client:
            outcome = await client.fetch_detail("flaky")

        assert outcome.success
        assert client.request_count == 2

    @pytest.mark.asyncio
    async def test_requests_counted_across_pages(self):
        async with _client(lambda request: httpx.Response(200, text=PAGE_HTML)) as client:
            for page_id in ("a", "b", "c"):
                await client.fetch_detail(page_id)
            assert client.request_count == 3


class TestDetailUrl:
    def test_trailing_slash_stripped(self):
        client = DetailPageClient(base_url="https://example.test/dtlEx/")
        assert client.detail_url("123") == "https://example.test/dtlEx/123"
