"""Shared URL utilities for named-page rewriting and path segment extraction."""

from __future__ import annotations

from urllib.parse import urljoin, urlparse, urlunparse


def named_page_url(base_url: str, path: str) -> str:
    """Replace the path of ``base_url`` (dropping query and fragment)."""
    parsed = urlparse(base_url)
    if not path.startswith("/"):
        path = "/" + path
    return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))


def absolute_url(base_url: str, url: str) -> str:
    """Resolve a relative URL such as ``/about`` against the session URL."""
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url, url)


def path_segments(url: str) -> list[str]:
    """Return the non-empty path segments of a URL."""
    return [seg for seg in urlparse(url).path.split("/") if seg]
