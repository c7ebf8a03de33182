"""Shared URL utilities: normalize site paths and derive component slugs."""

from __future__ import annotations

from urllib.parse import urlparse


def normalize_path(url: str) -> str:
    """Reduce an absolute or site-relative URL to its path, without trailing slash."""
    path = urlparse(url).path.rstrip("/")
    return path or "/"


def slug_from_url(url: str) -> str:
    """Last path segment of a URL, e.g. '/components/date-range-picker' -> 'date-range-picker'."""
    path = normalize_path(url)
    return path.rsplit("/", 1)[-1] or "unknown"


def format_name(slug: str) -> str:
    """Title-case a slug for display: 'clipboard-text' -> 'Clipboard Text'."""
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-") if word)
