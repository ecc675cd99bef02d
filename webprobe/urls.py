"""Target address normalization."""

import re
from urllib.parse import urlparse

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_url(target: str, base_url: str) -> str:
    """Resolve a configured target against the base URL.

    Absolute http(s) URLs are returned unchanged. Paths are appended to the
    base with its trailing slashes stripped, joined by exactly one ``/``.
    The result is not validated; malformed URLs fail later, at probe time.

    Args:
        target: Absolute URL or path as written in the configuration.
        base_url: Base URL used for paths.

    Returns:
        Absolute URL string.
    """
    value = str(target).strip()
    if _SCHEME_RE.match(value):
        return value

    base = base_url.rstrip("/")
    if value.startswith("/"):
        return base + value
    return f"{base}/{value}"


def get_hostname(url: str) -> str | None:
    """Return the hostname of a URL, or None if it cannot be parsed."""
    try:
        return urlparse(url).hostname or None
    except ValueError:
        return None
