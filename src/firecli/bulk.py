"""Map an entire site, then scrape every discovered page into a directory tree."""

from __future__ import annotations

import asyncio
import sys
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence, TypeVar
from urllib.parse import urlparse

from rich.console import Console
from rich.markup import escape

from firecli.config import BULK_OUTPUT_DIR
from firecli.firecrawl import AccountStatus, FirecrawlClient, FirecrawlError, ScrapeDocument
from firecli.outputs import save_document, url_to_nested_dir

T = TypeVar("T")

DEFAULT_FORMAT = "markdown"


class BulkScrapeError(Exception):
    """Setup failure that stops a run before any page is scraped."""

    pass


@dataclass
class ScrapeOptions:
    """Per-page scrape settings."""

    formats: list[str] = field(default_factory=list)
    only_main_content: bool | None = None
    screenshot: bool = False
    full_page_screenshot: bool = False
    wait_for: int | None = None
    include_tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    max_age: int | None = None
    country: str | None = None
    languages: list[str] = field(default_factory=list)

    def effective_formats(self) -> list[str]:
        """Formats to save, with markdown as the default."""
        formats = list(self.formats)
        wants_screenshot = self.screenshot or self.full_page_screenshot
        if not formats and not wants_screenshot:
            formats.append(DEFAULT_FORMAT)
        if wants_screenshot and "screenshot" not in formats:
            formats.append("screenshot")
        return formats

    def to_params(self) -> dict[str, Any]:
        """Build the scrape request parameters."""
        formats: list[Any] = [f for f in self.effective_formats() if f != "screenshot"]
        if self.full_page_screenshot:
            formats.append({"type": "screenshot", "fullPage": True})
        elif "screenshot" in self.effective_formats():
            formats.append("screenshot")

        params: dict[str, Any] = {"formats": formats}
        if self.only_main_content is not None:
            params["onlyMainContent"] = self.only_main_content
        if self.wait_for is not None:
            params["waitFor"] = self.wait_for
        if self.include_tags:
            params["includeTags"] = self.include_tags
        if self.exclude_tags:
            params["excludeTags"] = self.exclude_tags
        if self.max_age is not None:
            params["maxAge"] = self.max_age
        if self.country or self.languages:
            location: dict[str, Any] = {}
            if self.country:
                location["country"] = self.country
            if self.languages:
                location["languages"] = self.languages
            params["location"] = location
        return params


@dataclass
class AllScrapeOptions:
    """Settings for a whole-site run."""

    limit: int | None = None
    yes: bool = False
    search: str | None = None
    include_paths: list[str] | None = None
    exclude_paths: list[str] | None = None
    allow_subdomains: bool = False


@dataclass
class WizardResult:
    options: ScrapeOptions
    all_options: AllScrapeOptions
    urls: list[str]


WizardFn = Callable[[list[str], ScrapeOptions, AllScrapeOptions], WizardResult]


@dataclass
class ScrapeOutcome:
    url: str
    success: bool
    document: ScrapeDocument | None = None
    error: str | None = None


@dataclass
class BulkSummary:
    total: int = 0
    completed: int = 0
    errors: int = 0
    aborted: bool = False

    @property
    def succeeded(self) -> int:
        return self.completed - self.errors

    @property
    def exit_code(self) -> int:
        """1 only when every page failed."""
        if self.total > 0 and self.errors == self.total:
            return 1
        return 0


def has_explicit_flags(options: ScrapeOptions, all_options: AllScrapeOptions) -> bool:
    """Check if the user chose anything beyond the defaults.

    A bare markdown format selection is the default and does not count.
    """
    return bool(
        all_options.yes
        or all_options.limit is not None
        or all_options.include_paths is not None
        or all_options.exclude_paths is not None
        or (options.formats and options.formats != [DEFAULT_FORMAT])
        or options.screenshot
        or options.full_page_screenshot
        or options.only_main_content
    )


def url_path(url: str) -> str | None:
    """Path component of an absolute URL, or None if it does not parse."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return parsed.path or "/"


def get_top_paths(urls: Sequence[str]) -> list[tuple[str, int]]:
    """Count first path segments, most frequent first.

    Ties keep discovery order.
    """
    counts: Counter[str] = Counter()
    for url in urls:
        path = url_path(url)
        if path is None:
            continue
        first = path.lstrip("/").split("/")[0]
        if first:
            counts["/" + first] += 1
    return sorted(counts.items(), key=lambda item: -item[1])


def filter_urls(
    urls: Sequence[str],
    include_paths: Sequence[str] | None = None,
    exclude_paths: Sequence[str] | None = None,
) -> list[str]:
    """Keep URLs whose path matches an include prefix and no exclude prefix.

    Empty prefix lists do not filter. URLs that do not parse never match an
    include prefix and never match an exclude prefix.
    """
    result = []
    for url in urls:
        path = url_path(url)
        if include_paths:
            if path is None or not any(path.startswith(p) for p in include_paths):
                continue
        if exclude_paths and path is not None:
            if any(path.startswith(p) for p in exclude_paths):
                continue
        result.append(url)
    return result


async def run_worker_pool(
    items: Sequence[T],
    concurrency: int,
    worker: Callable[[T], Awaitable[None]],
) -> None:
    """Process items with min(concurrency, len(items)) cooperative workers.

    Workers share one cursor and each takes the next unclaimed item. The
    worker callable must not raise for per-item failures.
    """
    cursor = 0

    async def drain() -> None:
        nonlocal cursor
        while cursor < len(items):
            item = items[cursor]
            cursor += 1
            await worker(item)

    size = min(concurrency, len(items))
    if size <= 0:
        return
    await asyncio.gather(*(drain() for _ in range(size)))


async def execute_scrape(client: FirecrawlClient, url: str, options: ScrapeOptions) -> ScrapeOutcome:
    """Scrape one URL, folding API and transport failures into the outcome."""
    try:
        document = await client.scrape(url, options.to_params())
    except FirecrawlError as e:
        return ScrapeOutcome(url=url, success=False, error=str(e))
    return ScrapeOutcome(url=url, success=True, document=document)


class BulkScrapeOrchestrator:
    """Runs map -> select -> preflight -> scrape for one site."""

    def __init__(
        self,
        client: FirecrawlClient,
        output_root: Path | None = None,
        console: Console | None = None,
        wizard: WizardFn | None = None,
        ask: Callable[[str], str] | None = None,
        interactive: bool | None = None,
    ) -> None:
        self.client = client
        self.output_root = output_root or Path(BULK_OUTPUT_DIR)
        self.console = console or Console(stderr=True)
        self.wizard = wizard
        self.ask = ask or self.console.input
        self.interactive = sys.stdin.isatty() if interactive is None else interactive

    async def map_site(self, site_url: str, all_options: AllScrapeOptions) -> list[str]:
        """Discover the site's URLs.

        Raises:
            BulkScrapeError: If mapping fails or finds nothing
        """
        self.console.print(f"Mapping {escape(site_url)}...", highlight=False)
        try:
            urls = await self.client.map(
                site_url,
                search=all_options.search,
                include_subdomains=all_options.allow_subdomains or None,
            )
        except FirecrawlError as e:
            raise BulkScrapeError(f"Error mapping site: {e}") from e

        if not urls:
            raise BulkScrapeError("No URLs found on site.")

        self.console.print(f"Found {len(urls)} pages on {escape(site_url)}", highlight=False)
        return urls

    def select(
        self,
        urls: list[str],
        options: ScrapeOptions,
        all_options: AllScrapeOptions,
    ) -> WizardResult:
        """Pick options and URLs, through the wizard or from flags."""
        if self.wizard is not None and self.interactive and not has_explicit_flags(options, all_options):
            selection = self.wizard(urls, options, all_options)
        else:
            selection = WizardResult(
                options=options,
                all_options=all_options,
                urls=filter_urls(urls, all_options.include_paths, all_options.exclude_paths),
            )

        if not selection.urls:
            raise BulkScrapeError("No URLs matched after filtering.")

        limit = selection.all_options.limit
        if limit and limit > 0:
            selection = replace(selection, urls=selection.urls[:limit])
        return selection

    def preflight(
        self,
        urls: list[str],
        status: AccountStatus,
        all_options: AllScrapeOptions,
    ) -> list[str] | None:
        """Check credits and ask for confirmation.

        Returns:
            URLs to scrape, or None if the user aborted

        Raises:
            BulkScrapeError: If the run needs more credits than remain
        """
        remaining = status.credits_remaining
        if remaining is not None and len(urls) > remaining:
            raise BulkScrapeError(f"Not enough credits. Need {len(urls)}, have {remaining}.")

        if all_options.yes:
            return urls

        concurrency = status.max_concurrency or len(urls)
        credits_msg = (
            f", {len(urls)} credits ({remaining:,} remaining)" if remaining is not None else ""
        )
        self.console.print(
            f"\nScrape {len(urls)} pages{credits_msg}, {concurrency} at a time.",
            highlight=False,
        )

        answer = self.ask("Continue? (y/N or enter a number to set limit) ").strip()
        as_number = int(answer) if answer.isascii() and answer.isdecimal() else 0

        if as_number > 0:
            urls = urls[:as_number]
            self.console.print(f"Limiting to {len(urls)} pages.")
            return urls
        if answer.lower() != "y":
            self.console.print("Aborted.")
            return None
        return urls

    async def scrape_all(
        self,
        urls: list[str],
        options: ScrapeOptions,
        concurrency: int,
    ) -> BulkSummary:
        """Scrape every URL through the worker pool and save the results."""
        summary = BulkSummary(total=len(urls))
        formats = options.effective_formats()

        async def process(url: str) -> None:
            error: str | None = None
            directory: Path | None = None
            saved: list[Path] = []
            try:
                outcome = await execute_scrape(self.client, url, options)
                if not outcome.success or outcome.document is None:
                    error = outcome.error or "Unknown error"
                else:
                    directory = self.output_root / url_to_nested_dir(url)
                    saved = await save_document(directory, outcome.document, formats, self.client.download)
            except Exception as e:
                # Failures stay with their page; the other workers keep going
                error = str(e) or type(e).__name__

            summary.completed += 1
            position = f"[{summary.completed}/{summary.total}]"

            if error is not None:
                summary.errors += 1
                self.console.print(
                    f"{position} [red]Error:[/red] {escape(url)} - {escape(error)}",
                    highlight=False,
                )
                return

            self.console.print(
                f"{position} Saved: {escape(str(directory))}/ ({len(saved)} files)",
                highlight=False,
            )

        await run_worker_pool(urls, concurrency, process)
        return summary

    async def run(
        self,
        site_url: str,
        options: ScrapeOptions | None = None,
        all_options: AllScrapeOptions | None = None,
    ) -> BulkSummary:
        """Run the whole pipeline.

        Raises:
            BulkScrapeError: On mapping failure, no URLs, or insufficient credits
        """
        options = options or ScrapeOptions()
        all_options = all_options or AllScrapeOptions()

        discovered = await self.map_site(site_url, all_options)
        selection = self.select(discovered, options, all_options)

        status = await self.client.get_status()
        urls = self.preflight(selection.urls, status, selection.all_options)
        if urls is None:
            return BulkSummary(aborted=True)

        concurrency = status.max_concurrency or len(urls)
        of_total = f" of {len(discovered)}" if selection.all_options.limit else ""
        self.console.print(
            f"Scraping {len(urls)}{of_total} pages ({concurrency} at a time)...",
            highlight=False,
        )

        summary = await self.scrape_all(urls, selection.options, concurrency)

        line = f"\nCompleted: {summary.succeeded}/{summary.total} succeeded"
        if summary.errors:
            line += f", {summary.errors} failed"
        self.console.print(line, highlight=False)
        return summary
