"""Tests for the API client, retry logic and job polling."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from firecli.config import ClientConfig
from firecli.firecrawl import (
    AgentJob,
    CrawlJob,
    FirecrawlClient,
    FirecrawlError,
    HtmlContent,
    MarkdownContent,
    ScrapeDocument,
    ScreenshotContent,
    is_permanent_error,
    wait_for_job,
    with_retry,
)


def make_client(handler, api_key="fc-test", max_retries=0):
    """Client whose HTTP traffic goes to handler instead of the network."""
    config = ClientConfig(api_url="https://api.test", api_key=api_key, max_retries=max_retries)
    client = FirecrawlClient(config)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def status_error(code):
    request = httpx.Request("GET", "https://api.test")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(code, request=request))


class TestIsPermanentError:
    """Tests for is_permanent_error function."""

    def test_none_status_code_is_retryable(self):
        """Network errors (None status) should be retried."""
        assert is_permanent_error(None) is False

    def test_408_and_429_are_retryable(self):
        assert is_permanent_error(408) is False
        assert is_permanent_error(429) is False

    def test_4xx_except_408_429_are_permanent(self):
        for code in [400, 401, 403, 404, 410, 422]:
            assert is_permanent_error(code) is True, f"{code} should be permanent"

    def test_5xx_are_retryable(self):
        for code in [500, 502, 503, 504]:
            assert is_permanent_error(code) is False, f"{code} should be retryable"


class TestWithRetry:
    """Tests for the async retry helper."""

    def test_retries_transient_then_succeeds(self):
        func = AsyncMock(side_effect=[status_error(503), status_error(429), "ok"])
        with patch("firecli.firecrawl.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            result = asyncio.run(with_retry(func, max_retries=3))

        assert result == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    def test_permanent_error_not_retried(self):
        func = AsyncMock(side_effect=status_error(404))
        with patch("firecli.firecrawl.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.HTTPStatusError):
                asyncio.run(with_retry(func, max_retries=3))
        assert func.await_count == 1

    def test_gives_up_after_max_retries(self):
        request = httpx.Request("GET", "https://api.test")
        func = AsyncMock(side_effect=httpx.ConnectError("down", request=request))
        with patch("firecli.firecrawl.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.ConnectError):
                asyncio.run(with_retry(func, max_retries=2))
        assert func.await_count == 3

    def test_delay_is_capped(self):
        func = AsyncMock(side_effect=[status_error(500)] * 3 + ["ok"])
        with patch("firecli.firecrawl.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            asyncio.run(with_retry(func, max_retries=3, base_delay=10.0, max_delay=15.0))
        assert [c.args[0] for c in mock_sleep.await_args_list] == [10.0, 15.0, 15.0]


class TestScrapeDocument:
    """Tests for ScrapeDocument.from_payload."""

    def test_markdown_and_metadata(self):
        doc = ScrapeDocument.from_payload({"markdown": "# Hi", "metadata": {"title": "Hi"}})
        assert doc.get("markdown") == MarkdownContent(text="# Hi")
        assert doc.metadata == {"title": "Hi"}

    def test_html_registered_under_both_names(self):
        doc = ScrapeDocument.from_payload({"rawHtml": "<html></html>"})
        assert isinstance(doc.get("html"), HtmlContent)
        assert doc.get("html") is doc.get("rawHtml")
        assert doc.get("html").best == "<html></html>"

    def test_screenshot(self):
        doc = ScrapeDocument.from_payload({"screenshot": "https://cdn.test/shot.png"})
        assert doc.get("screenshot") == ScreenshotContent(url="https://cdn.test/shot.png")

    def test_missing_formats_are_absent(self):
        doc = ScrapeDocument.from_payload({"markdown": "x"})
        assert doc.get("links") is None
        assert doc.get("summary") is None

    def test_raw_kept(self):
        payload = {"markdown": "x", "branding": {"colors": []}}
        assert ScrapeDocument.from_payload(payload).raw == payload


class TestClientRequests:
    """Tests for request construction and response handling."""

    def test_scrape_sends_body_and_auth(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"markdown": "# Page"}})

        async def go():
            async with make_client(handler) as client:
                return await client.scrape("https://example.com", {"formats": ["markdown", "links"]})

        doc = asyncio.run(go())

        assert seen["url"] == "https://api.test/v2/scrape"
        assert seen["auth"] == "Bearer fc-test"
        assert seen["body"] == {"url": "https://example.com", "formats": ["markdown", "links"]}
        assert doc.get("markdown").text == "# Page"

    def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"success": True, "links": []})

        async def go():
            async with make_client(handler, api_key=None) as client:
                return await client.map("https://example.com")

        asyncio.run(go())
        assert seen["auth"] is None

    def test_map_accepts_string_and_object_links(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "links": [
                        "https://example.com/a",
                        {"url": "https://example.com/b", "title": "B"},
                        {"title": "no url"},
                    ],
                },
            )

        async def go():
            async with make_client(handler) as client:
                return await client.map("https://example.com")

        assert asyncio.run(go()) == ["https://example.com/a", "https://example.com/b"]

    def test_unsuccessful_body_raises(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Blocked"})

        async def go():
            async with make_client(handler) as client:
                return await client.scrape("https://example.com")

        with pytest.raises(FirecrawlError, match="Blocked"):
            asyncio.run(go())

    def test_http_error_carries_status_and_message(self):
        def handler(request):
            return httpx.Response(410, json={"success": False, "error": "Session destroyed"})

        async def go():
            async with make_client(handler) as client:
                return await client.browser_execute("sess-1", "1+1", "python")

        with pytest.raises(FirecrawlError) as exc_info:
            asyncio.run(go())
        assert exc_info.value.status_code == 410
        assert str(exc_info.value) == "Session destroyed"

    def test_browser_execute_body(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "result": "2"})

        async def go():
            async with make_client(handler) as client:
                return await client.browser_execute("sess-1", "1+1", "node")

        data = asyncio.run(go())
        assert seen["path"] == "/v2/browser/sess-1/execute"
        assert seen["body"] == {"code": "1+1", "language": "node"}
        assert data["result"] == "2"

    def test_browser_launch_body(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "id": "s", "cdpUrl": "wss://x"})

        async def go():
            async with make_client(handler) as client:
                return await client.browser(ttl=300, activity_ttl=60, stream_web_view=True)

        asyncio.run(go())
        assert seen["body"] == {"ttl": 300, "activityTtl": 60, "streamWebView": True}

    def test_get_status_tolerates_partial_failure(self):
        def handler(request):
            if request.url.path.endswith("credit-usage"):
                return httpx.Response(200, json={"success": True, "data": {"remainingCredits": 30}})
            return httpx.Response(404, json={"error": "not here"})

        async def go():
            async with make_client(handler) as client:
                return await client.get_status()

        status = asyncio.run(go())
        assert status.credits_remaining == 30
        assert status.max_concurrency is None

    def test_get_status_non_numeric_fields_are_unknown(self):
        def handler(request):
            if request.url.path.endswith("credit-usage"):
                return httpx.Response(200, json={"success": True, "data": {"remainingCredits": "lots"}})
            return httpx.Response(200, json={"success": True, "maxConcurrency": {"value": 5}})

        async def go():
            async with make_client(handler) as client:
                return await client.get_status()

        status = asyncio.run(go())
        assert status.credits_remaining is None
        assert status.max_concurrency is None

    def test_get_status_numeric_strings(self):
        def handler(request):
            if request.url.path.endswith("credit-usage"):
                return httpx.Response(200, json={"success": True, "data": {"remainingCredits": "120"}})
            return httpx.Response(200, json={"success": True, "maxConcurrency": 4})

        async def go():
            async with make_client(handler) as client:
                return await client.get_status()

        status = asyncio.run(go())
        assert status.credits_remaining == 120
        assert status.max_concurrency == 4

    def test_start_crawl_body(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "id": "job-1"})

        async def go():
            async with make_client(handler) as client:
                return await client.start_crawl(
                    "https://example.com", limit=10, max_depth=2, include_paths=["/docs"]
                )

        job = asyncio.run(go())
        assert job.job_id == "job-1"
        assert seen["body"] == {
            "url": "https://example.com",
            "limit": 10,
            "maxDiscoveryDepth": 2,
            "includePaths": ["/docs"],
        }

    def test_download_error(self):
        def handler(request):
            return httpx.Response(403)

        async def go():
            async with make_client(handler) as client:
                return await client.download("https://cdn.test/shot.png")

        with pytest.raises(FirecrawlError) as exc_info:
            asyncio.run(go())
        assert exc_info.value.status_code == 403


class TestWaitForJob:
    """Tests for wait_for_job polling."""

    def test_returns_completed_job(self):
        fetch = AsyncMock(
            side_effect=[
                CrawlJob(job_id="j", status="scraping"),
                CrawlJob(job_id="j", status="completed", total=2, completed=2),
            ]
        )
        updates = []
        with patch("firecli.firecrawl.asyncio.sleep", new=AsyncMock()):
            job = asyncio.run(wait_for_job(fetch, poll_interval=0.1, on_update=updates.append))

        assert job.status == "completed"
        assert [u.status for u in updates] == ["scraping", "completed"]

    def test_failed_job_raises(self):
        fetch = AsyncMock(return_value=AgentJob(job_id="j", status="failed", error="Out of credits"))
        with pytest.raises(FirecrawlError, match="Out of credits"):
            asyncio.run(wait_for_job(fetch))

    def test_timeout(self):
        fetch = AsyncMock(return_value=CrawlJob(job_id="j", status="scraping"))
        with pytest.raises(FirecrawlError, match="Timeout"):
            asyncio.run(wait_for_job(fetch, poll_interval=0.01, timeout=0.05))
        assert fetch.await_count > 1
