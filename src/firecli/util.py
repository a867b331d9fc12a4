"""Utility functions for firecli."""

from __future__ import annotations

import re

JOB_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_url(text: str) -> bool:
    """Check if text looks like a URL.

    Args:
        text: Text to check

    Returns:
        True if text appears to be a URL
    """
    text = text.strip()
    if re.match(r"^https?://", text, re.IGNORECASE):
        return True
    # Bare domains like example.com/docs
    return bool(re.match(r"^[a-z0-9-]+(\.[a-z0-9-]+)+(:\d+)?(/\S*)?$", text, re.IGNORECASE))


def normalize_url(text: str) -> str:
    """Add https:// to bare domains."""
    text = text.strip()
    if re.match(r"^https?://", text, re.IGNORECASE):
        return text
    return f"https://{text}"


def is_job_id(text: str) -> bool:
    """Check if text is a UUID v4 job id (crawl or agent)."""
    return bool(JOB_ID_PATTERN.match(text.strip()))


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated option into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
