"""HTML sniffing and metadata extraction from response bodies.

Extraction is targeted pattern matching, not a full HTML parser. Callers only
use ``extract_content`` and ``contains_keyword``, so a parser-based
implementation can replace this module without touching the prober.
"""

import re
from dataclasses import dataclass

# Only the head of the body is inspected when the Content-Type is missing or wrong.
SNIFF_BYTES = 512

TITLE_MAX_CHARS = 200
META_DESCRIPTION_MAX_CHARS = 400

ELLIPSIS = "…"

_HTML_SNIFF_RE = re.compile(r"<!doctype html|<html|<head|<title", re.IGNORECASE)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_META_DESCRIPTION_RE = re.compile(
    r"""<meta[^>]*name=["']description["'][^>]*content=["']([^"']+)["'][^>]*>""",
    re.IGNORECASE,
)
_OG_DESCRIPTION_RE = re.compile(
    r"""<meta[^>]*property=["']og:description["'][^>]*content=["']([^"']+)["'][^>]*>""",
    re.IGNORECASE,
)

# Decoded in this order; &amp; first.
_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&#39;", "'"),
    ("&quot;", '"'),
)


@dataclass(frozen=True)
class ExtractedContent:
    """Result of inspecting a response body."""

    is_html: bool
    title: str | None = None
    meta_description: str | None = None
    text: str = ""


def decode_entities(value: str) -> str:
    """Decode the common HTML entities."""
    for entity, char in _ENTITIES:
        value = value.replace(entity, char)
    return value


def trim_and_clip(value: str, limit: int) -> str:
    """Trim whitespace and clip to ``limit`` characters.

    Clipped values end with a single ellipsis character and are exactly
    ``limit`` characters long.
    """
    text = value.strip()
    if len(text) > limit:
        return text[: limit - 1] + ELLIPSIS
    return text


def _decode_body(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def looks_like_html(body: bytes | None) -> bool:
    """Return True if the start of the body looks like an HTML document."""
    if not body:
        return False
    head = _decode_body(body[:SNIFF_BYTES])
    return _HTML_SNIFF_RE.search(head) is not None


def is_html(body: bytes | None, content_type: str | None) -> bool:
    """Decide whether a response is HTML from its header or its first bytes."""
    if content_type and "text/html" in content_type.lower():
        return True
    return looks_like_html(body)


def extract_title(html: str) -> str | None:
    """Return the decoded, clipped text of the first <title> element."""
    match = _TITLE_RE.search(html)
    if match is None:
        return None
    return trim_and_clip(decode_entities(match.group(1)), TITLE_MAX_CHARS)


def extract_meta_description(html: str) -> str | None:
    """Return the meta description, falling back to og:description."""
    for pattern in (_META_DESCRIPTION_RE, _OG_DESCRIPTION_RE):
        match = pattern.search(html)
        if match and match.group(1):
            return trim_and_clip(decode_entities(match.group(1)), META_DESCRIPTION_MAX_CHARS)
    return None


def contains_keyword(html: str, keyword: str) -> bool:
    """Case-insensitive substring search over the full HTML text."""
    return keyword.lower() in html.lower()


def extract_content(body: bytes | None, content_type: str | None) -> ExtractedContent:
    """Inspect a response body.

    Args:
        body: Raw response body.
        content_type: Value of the Content-Type header, if any.

    Returns:
        ExtractedContent. Non-HTML bodies only carry ``is_html=False``.
    """
    if not is_html(body, content_type):
        return ExtractedContent(is_html=False)

    html = _decode_body(body or b"")
    return ExtractedContent(
        is_html=True,
        title=extract_title(html),
        meta_description=extract_meta_description(html),
        text=html,
    )
