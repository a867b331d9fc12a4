"""Output handling for firecli - nested paths, per-format files, stdout/file sink."""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

from firecli.firecrawl import (
    FirecrawlError,
    HtmlContent,
    ImagesContent,
    LinksContent,
    MarkdownContent,
    ScrapeDocument,
    ScreenshotContent,
    SummaryContent,
)

# File written for each format inside a page directory
FORMAT_FILENAMES = {
    "markdown": "index.md",
    "html": "index.html",
    "rawHtml": "index.html",
    "links": "links.txt",
    "images": "images.txt",
    "summary": "summary.md",
    "screenshot": "screenshot.png",
    "json": "index.json",
}
FALLBACK_FILENAME = "index.json"

Downloader = Callable[[str], Awaitable[bytes]]


def sanitize_token(text: str) -> str:
    """Make arbitrary text safe to use as a single path component."""
    return re.sub(r"[^A-Za-z0-9.-]", "_", text)


def url_to_nested_dir(url: str) -> Path:
    """Convert a URL into a relative directory path.

    e.g. https://docs.example.com/features/scrape -> docs.example.com/features/scrape
         https://www.example.com/ -> example.com

    Scheme, query string and fragment are dropped. Input that does not parse
    as an absolute URL becomes one sanitized path component.
    """
    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
    except ValueError:
        return Path(sanitize_token(url))
    if not parsed.scheme or not host:
        return Path(sanitize_token(url))

    if host.startswith("www."):
        host = host[4:]

    segments = [s for s in parsed.path.strip("/").split("/") if s and s not in (".", "..")]
    return Path(host, *segments)


def _write_text(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


async def save_document(
    directory: Path,
    document: ScrapeDocument,
    formats: list[str],
    downloader: Downloader | None = None,
) -> list[Path]:
    """Write one file per requested format into directory.

    Args:
        directory: Page directory (created if missing)
        document: The scraped page
        formats: Requested format names
        downloader: Fetches screenshot bytes; screenshots are skipped without one

    Returns:
        Paths of the files written
    """
    directory.mkdir(parents=True, exist_ok=True)
    saved: list[Path] = []

    for fmt in formats:
        content = document.get(fmt)
        target = directory / FORMAT_FILENAMES.get(fmt, FALLBACK_FILENAME)

        if fmt == "screenshot":
            if isinstance(content, ScreenshotContent) and downloader is not None:
                try:
                    target.write_bytes(await downloader(content.url))
                    saved.append(target)
                except FirecrawlError:
                    # A missing screenshot does not fail the page
                    pass
        elif fmt == "markdown":
            if isinstance(content, MarkdownContent):
                saved.append(_write_text(target, content.text))
        elif fmt in ("html", "rawHtml"):
            if isinstance(content, HtmlContent) and content.best:
                saved.append(_write_text(target, content.best))
        elif fmt == "links":
            if isinstance(content, LinksContent):
                saved.append(_write_text(target, "\n".join(content.links)))
        elif fmt == "images":
            if isinstance(content, ImagesContent):
                saved.append(_write_text(target, "\n".join(content.images)))
        elif fmt == "summary":
            if isinstance(content, SummaryContent):
                saved.append(_write_text(target, content.text))
        else:
            saved.append(_write_text(target, json.dumps(document.raw, indent=2)))

    # Two formats may share a file (html + rawHtml)
    return list(dict.fromkeys(saved))


def to_text(data: Any, pretty: bool = False) -> str:
    """Render data for output: strings as-is, everything else as JSON."""
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)


def write_output(data: Any, output_path: str | Path | None = None, pretty: bool = False) -> Path | None:
    """Write primary output to a file, or to stdout when no path is given.

    Returns:
        Path written, or None for stdout
    """
    content = to_text(data, pretty=pretty)

    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        sys.stderr.write(f"Output written to: {path}\n")
        return path

    sys.stdout.write(content)
    if not content.endswith("\n"):
        sys.stdout.write("\n")
    sys.stdout.flush()
    return None
