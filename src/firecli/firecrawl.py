"""Firecrawl API client."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar, Union

import httpx

from firecli.config import ClientConfig

T = TypeVar("T")


def is_permanent_error(status_code: int | None) -> bool:
    """Check if an HTTP status code represents a permanent error that should NOT be retried.

    Permanent errors are 4xx client errors (except 408 Request Timeout and 429 Too Many Requests).

    Args:
        status_code: HTTP status code, or None for network errors

    Returns:
        True if the error is permanent and should not be retried
    """
    if status_code is None:
        return False  # Network error - should retry
    if 400 <= status_code < 500 and status_code not in {408, 429}:
        return True
    return False


async def with_retry(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: tuple = (httpx.RequestError,),
) -> T:
    """Await a coroutine factory with exponential backoff retry.

    Args:
        func: Zero-argument callable returning the awaitable to run
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries
        retryable_exceptions: Tuple of exception types that should trigger retry

    Returns:
        Result of the awaitable

    Raises:
        The last exception if all retries fail
    """
    last_exception: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except httpx.HTTPStatusError as e:
            if is_permanent_error(e.response.status_code):
                raise
            last_exception = e
        except retryable_exceptions as e:
            last_exception = e

        if attempt < max_retries:
            delay = min(base_delay * (2**attempt), max_delay)
            await asyncio.sleep(delay)

    # All retries exhausted
    if last_exception:
        raise last_exception
    raise RuntimeError("Retry logic error")


class FirecrawlError(Exception):
    """Error from the Firecrawl API or its transport."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# Scrape content variants, one per requested format


@dataclass
class MarkdownContent:
    text: str


@dataclass
class HtmlContent:
    html: str | None = None
    raw_html: str | None = None

    @property
    def best(self) -> str | None:
        """First non-empty of cleaned and raw HTML."""
        return self.html or self.raw_html


@dataclass
class LinksContent:
    links: list[str]


@dataclass
class ImagesContent:
    images: list[str]


@dataclass
class SummaryContent:
    text: str


@dataclass
class ScreenshotContent:
    url: str


@dataclass
class JsonContent:
    payload: Any


FormatContent = Union[
    MarkdownContent,
    HtmlContent,
    LinksContent,
    ImagesContent,
    SummaryContent,
    ScreenshotContent,
    JsonContent,
]


@dataclass
class ScrapeDocument:
    """Scraped page keyed by format name."""

    contents: dict[str, FormatContent] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    def get(self, fmt: str) -> FormatContent | None:
        return self.contents.get(fmt)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ScrapeDocument":
        """Build a document from the `data` object of a scrape response."""
        contents: dict[str, FormatContent] = {}

        if data.get("markdown"):
            contents["markdown"] = MarkdownContent(text=data["markdown"])
        if data.get("html") or data.get("rawHtml"):
            html = HtmlContent(html=data.get("html"), raw_html=data.get("rawHtml"))
            contents["html"] = html
            contents["rawHtml"] = html
        if isinstance(data.get("links"), list):
            contents["links"] = LinksContent(links=[str(x) for x in data["links"]])
        if isinstance(data.get("images"), list):
            contents["images"] = ImagesContent(images=[str(x) for x in data["images"]])
        if data.get("summary"):
            contents["summary"] = SummaryContent(text=data["summary"])
        if data.get("screenshot"):
            contents["screenshot"] = ScreenshotContent(url=data["screenshot"])
        if "json" in data:
            contents["json"] = JsonContent(payload=data["json"])

        return cls(
            contents=contents,
            metadata=data.get("metadata") or {},
            raw=data,
        )


@dataclass
class AccountStatus:
    """Credit balance and concurrency cap for the team behind the API key."""

    credits_remaining: int | None = None
    max_concurrency: int | None = None


@dataclass
class CrawlJob:
    """Represents a crawl job."""

    job_id: str
    total: int = 0
    completed: int = 0
    status: str = "pending"
    credits_used: int | None = None
    data: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class AgentJob:
    """Represents an agent job."""

    job_id: str
    status: str = "processing"
    data: Any = None
    credits_used: int | None = None
    expires_at: str | None = None
    error: str | None = None


def _as_int(value: Any) -> int | None:
    """Parse a numeric API field; anything unparsable counts as unknown."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# Terminal job states shared by crawl and agent polling
JOB_DONE = "completed"
JOB_FAILED = ("failed", "cancelled")


async def wait_for_job(
    fetch_status: Callable[[], Awaitable[T]],
    poll_interval: float = 5.0,
    timeout: float | None = None,
    on_update: Callable[[T], None] | None = None,
) -> T:
    """Poll a crawl or agent job until it reaches a terminal state.

    Args:
        fetch_status: Coroutine factory returning an object with `job_id` and `status`
        poll_interval: Seconds to sleep between polls
        timeout: Give up after this many seconds (None waits forever)
        on_update: Optional callback invoked with every polled status

    Returns:
        The completed job status

    Raises:
        FirecrawlError: If the job fails, is cancelled, or the timeout is exceeded
    """
    started = time.monotonic()

    while True:
        job = await fetch_status()
        if on_update:
            on_update(job)

        status = getattr(job, "status", None)
        if status == JOB_DONE:
            return job
        if status in JOB_FAILED:
            error = getattr(job, "error", None) or f"Job {status}"
            raise FirecrawlError(f"{error} (Job ID: {job.job_id})")

        if timeout is not None and time.monotonic() - started > timeout:
            raise FirecrawlError(
                f"Timeout after {timeout:g} seconds. Job still {status}. Job ID: {job.job_id}"
            )

        await asyncio.sleep(poll_interval)


class FirecrawlClient:
    """Async client for the Firecrawl API."""

    def __init__(self, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self.api_url = self.config.api_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FirecrawlClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, DELETE)
            endpoint: API endpoint path
            json: JSON body for POST requests
            params: Query parameters

        Returns:
            HTTP response
        """

        async def do_request() -> httpx.Response:
            response = await self.client.request(
                method.upper(),
                f"{self.api_url}{endpoint}",
                json=json,
                params=params,
                headers=self._headers(),
            )
            response.raise_for_status()
            return response

        return await with_retry(do_request, max_retries=self.config.max_retries)

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a request and decode the JSON body, converting failures to FirecrawlError."""
        try:
            response = await self._make_request(method, endpoint, json=json, params=params)
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}"
            try:
                error_data = e.response.json()
                if isinstance(error_data, dict) and error_data.get("error"):
                    error_msg = error_data["error"]
            except ValueError:
                pass
            raise FirecrawlError(error_msg, status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            raise FirecrawlError(f"Request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise FirecrawlError(
                "Invalid JSON in API response", status_code=response.status_code
            ) from e
        return data if isinstance(data, dict) else {"success": True, "data": data}

    @staticmethod
    def _check(data: dict[str, Any], default_error: str) -> dict[str, Any]:
        if not data.get("success", True):
            raise FirecrawlError(data.get("error") or default_error)
        return data

    async def scrape(self, url: str, params: dict[str, Any] | None = None) -> ScrapeDocument:
        """Scrape a single URL.

        Args:
            url: The URL to scrape
            params: Scrape parameters (formats, onlyMainContent, waitFor, ...)

        Returns:
            ScrapeDocument keyed by format

        Raises:
            FirecrawlError: On API or transport failure
        """
        body: dict[str, Any] = {"url": url, "formats": ["markdown"]}
        body.update(params or {})
        data = self._check(await self._request_json("POST", "/v2/scrape", json=body), "Scrape failed")
        return ScrapeDocument.from_payload(data.get("data") or {})

    async def map(
        self,
        url: str,
        search: str | None = None,
        include_subdomains: bool | None = None,
        limit: int | None = None,
        ignore_query_parameters: bool | None = None,
    ) -> list[str]:
        """Discover the URLs of a site.

        Returns:
            Discovered URLs in the order the API returned them
        """
        body: dict[str, Any] = {"url": url}
        if search:
            body["search"] = search
        if include_subdomains is not None:
            body["includeSubdomains"] = include_subdomains
        if limit:
            body["limit"] = limit
        if ignore_query_parameters is not None:
            body["ignoreQueryParameters"] = ignore_query_parameters

        data = self._check(await self._request_json("POST", "/v2/map", json=body), "Map failed")
        links = data.get("links")
        if links is None:
            links = (data.get("data") or {}).get("links", [])

        urls: list[str] = []
        for link in links:
            # Links come back as bare strings or as {"url": ..., "title": ...}
            if isinstance(link, dict):
                if link.get("url"):
                    urls.append(link["url"])
            elif link:
                urls.append(str(link))
        return urls

    async def search(
        self,
        query: str,
        limit: int | None = None,
        sources: list[str] | None = None,
        scrape_formats: list[str] | None = None,
    ) -> dict[str, Any]:
        """Run a web search, optionally scraping each result."""
        body: dict[str, Any] = {"query": query}
        if limit:
            body["limit"] = limit
        if sources:
            body["sources"] = sources
        if scrape_formats:
            body["scrapeOptions"] = {"formats": scrape_formats}
        data = self._check(await self._request_json("POST", "/v2/search", json=body), "Search failed")
        return data.get("data") or {}

    async def start_crawl(
        self,
        url: str,
        limit: int | None = None,
        max_depth: int | None = None,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
        allow_subdomains: bool = False,
        allow_external_links: bool = False,
        crawl_entire_domain: bool = False,
        delay: float | None = None,
        max_concurrency: int | None = None,
        scrape_formats: list[str] | None = None,
    ) -> CrawlJob:
        """Start a crawl job."""
        body: dict[str, Any] = {"url": url}
        if limit:
            body["limit"] = limit
        if max_depth:
            body["maxDiscoveryDepth"] = max_depth
        if include_paths:
            body["includePaths"] = include_paths
        if exclude_paths:
            body["excludePaths"] = exclude_paths
        if allow_subdomains:
            body["allowSubdomains"] = True
        if allow_external_links:
            body["allowExternalLinks"] = True
        if crawl_entire_domain:
            body["crawlEntireDomain"] = True
        if delay is not None:
            body["delay"] = delay
        if max_concurrency:
            body["maxConcurrency"] = max_concurrency
        if scrape_formats:
            body["scrapeOptions"] = {"formats": scrape_formats}

        data = self._check(
            await self._request_json("POST", "/v2/crawl", json=body), "Failed to start crawl"
        )

        job_id = data.get("id", "")
        if not job_id and data.get("url"):
            job_id = data["url"].rstrip("/").split("/")[-1]
        return CrawlJob(job_id=job_id)

    async def get_crawl_status(self, job_id: str) -> CrawlJob:
        """Get the status of a crawl job."""
        data = self._check(
            await self._request_json("GET", f"/v2/crawl/{job_id}"), "Failed to get crawl status"
        )
        return CrawlJob(
            job_id=job_id,
            total=data.get("total", 0),
            completed=data.get("completed", 0),
            status=data.get("status", "unknown"),
            credits_used=data.get("creditsUsed"),
            data=data.get("data") or [],
        )

    async def start_agent(
        self,
        prompt: str,
        urls: list[str] | None = None,
        schema: dict[str, Any] | None = None,
        model: str | None = None,
        max_credits: int | None = None,
    ) -> AgentJob:
        """Start an agent job."""
        body: dict[str, Any] = {"prompt": prompt}
        if urls:
            body["urls"] = urls
        if schema:
            body["schema"] = schema
        if model:
            body["model"] = model
        if max_credits is not None:
            body["maxCredits"] = max_credits

        data = self._check(
            await self._request_json("POST", "/v2/agent", json=body), "Failed to start agent"
        )
        return AgentJob(job_id=data.get("id", ""))

    async def get_agent_status(self, job_id: str) -> AgentJob:
        """Get the status of an agent job."""
        data = await self._request_json("GET", f"/v2/agent/{job_id}")
        return AgentJob(
            job_id=job_id,
            status=data.get("status", "unknown"),
            data=data.get("data"),
            credits_used=data.get("creditsUsed"),
            expires_at=data.get("expiresAt"),
            error=data.get("error"),
        )

    async def browser(
        self,
        ttl: int | None = None,
        activity_ttl: int | None = None,
        stream_web_view: bool | None = None,
    ) -> dict[str, Any]:
        """Launch a remote browser session.

        Returns:
            Raw response: {success, id, cdpUrl, liveViewUrl?} or {success: False, error}
        """
        body: dict[str, Any] = {}
        if ttl is not None:
            body["ttl"] = ttl
        if activity_ttl is not None:
            body["activityTtl"] = activity_ttl
        if stream_web_view is not None:
            body["streamWebView"] = stream_web_view
        return await self._request_json("POST", "/v2/browser", json=body)

    async def browser_execute(self, session_id: str, code: str, language: str) -> dict[str, Any]:
        """Execute Playwright code in a remote browser session.

        Raises:
            FirecrawlError: Carrying the HTTP status, so callers can detect expired sessions
        """
        return await self._request_json(
            "POST",
            f"/v2/browser/{session_id}/execute",
            json={"code": code, "language": language},
        )

    async def list_browsers(self, status: str | None = None) -> dict[str, Any]:
        """List browser sessions, optionally filtered by status."""
        params = {"status": status} if status else None
        return await self._request_json("GET", "/v2/browser", params=params)

    async def delete_browser(self, session_id: str) -> dict[str, Any]:
        """Close a browser session."""
        return await self._request_json("DELETE", f"/v2/browser/{session_id}")

    async def get_status(self) -> AccountStatus:
        """Fetch remaining credits and the concurrency cap.

        Either field may be missing (self-hosted instances have no billing).
        """
        status = AccountStatus()

        try:
            usage = await self._request_json("GET", "/v2/team/credit-usage")
            data = usage.get("data")
            if isinstance(data, dict):
                status.credits_remaining = _as_int(data.get("remainingCredits"))
        except FirecrawlError:
            pass

        try:
            queue = await self._request_json("GET", "/v2/team/queue-status")
            status.max_concurrency = _as_int(queue.get("maxConcurrency")) or None
        except FirecrawlError:
            pass

        return status

    async def download(self, url: str) -> bytes:
        """Download a file (e.g. a screenshot) without API credentials."""
        try:
            response = await self.client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FirecrawlError(
                f"HTTP {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.RequestError as e:
            raise FirecrawlError(f"Request failed: {e}") from e
        return response.content
