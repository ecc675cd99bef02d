"""Hostname resolution over DNS-over-HTTPS (JSON API)."""

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

DEFAULT_DOH_URL = "https://dns.google/resolve"

# DNS RR type codes as returned in the "Answer" array.
RECORD_TYPE_CODES = {"A": 1, "AAAA": 28}

_opener = urllib.request.build_opener()


@dataclass(frozen=True)
class DnsRecords:
    """Addresses resolved for one hostname."""

    a: list[str] = field(default_factory=list)
    aaaa: list[str] = field(default_factory=list)


def _query(hostname: str, record_type: str, doh_url: str, timeout: float, user_agent: str) -> list[str]:
    """Run one DoH lookup. Any failure yields an empty list."""
    query = urlencode({"name": hostname, "type": record_type})
    request = urllib.request.Request(
        f"{doh_url}?{query}",
        method="GET",
        headers={"Accept": "application/dns-json", "User-Agent": user_agent},
    )
    type_code = RECORD_TYPE_CODES[record_type]

    try:
        with _opener.open(request, timeout=timeout) as response:
            if response.status != 200:
                logger.debug("DoH %s lookup for %s returned %d", record_type, hostname, response.status)
                return []
            body = json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        logger.debug("DoH %s lookup for %s returned %d", record_type, hostname, e.code)
        return []
    except (urllib.error.URLError, OSError, ValueError) as e:
        logger.debug("DoH %s lookup for %s failed: %s", record_type, hostname, e)
        return []

    answers = body.get("Answer") if isinstance(body, dict) else None
    if not isinstance(answers, list):
        return []

    return [
        str(answer["data"])
        for answer in answers
        if isinstance(answer, dict) and answer.get("type") == type_code and answer.get("data") is not None
    ]


def resolve_dns(
    hostname: str | None,
    doh_url: str = DEFAULT_DOH_URL,
    timeout: float = 10,
    user_agent: str = "webprobe/0.1",
) -> DnsRecords:
    """Resolve A and AAAA records for a hostname.

    The two lookups are independent: a non-200 answer, unparseable body or
    network error empties only that record type. No retries.

    Args:
        hostname: Host to resolve. None or empty returns empty results.
        doh_url: DNS-over-HTTPS JSON endpoint.
        timeout: Per-request timeout in seconds.
        user_agent: User-Agent header for the lookups.

    Returns:
        DnsRecords with ordered address lists.
    """
    if not hostname:
        return DnsRecords()

    return DnsRecords(
        a=_query(hostname, "A", doh_url, timeout, user_agent),
        aaaa=_query(hostname, "AAAA", doh_url, timeout, user_agent),
    )
