"""
Helpers for turning Danbooru media paths into absolute URLs.
"""

from typing import Optional
from urllib.parse import urljoin, urlparse
from danbooru_explorer.config.constants import DANBOORU_BASE_URL


def make_danbooru_url(value: Optional[str], base_url: str = DANBOORU_BASE_URL) -> Optional[str]:
    """
    Build an absolute URL from a string that may be an absolute URL or a
    path relative to the Danbooru host.

    Args:
        value: Absolute URL or relative path, possibly None or empty
        base_url: Host to resolve relative paths against

    Returns:
        Absolute URL, or None when value is None or empty
    """
    if not value:
        return None
    if urlparse(value).scheme:
        return value

    path = value if value.startswith("/") else "/" + value
    return urljoin(base_url.rstrip("/") + "/", path)


def post_page_url(post_id: int, base_url: str = DANBOORU_BASE_URL) -> str:
    """Get the browser URL of a post."""
    return f"{base_url.rstrip('/')}/posts/{post_id}"
