"""Data models for probe results and derived metrics."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CheckResult:
    """Result of a single probe against one target.

    Field order is the stored column order; see ``records.RECORD_COLUMNS``.

    Attributes:
        timestamp: Local time the probe started (timezone-aware).
        url: Requested URL.
        ok: True if no error occurred and the status is in [200, 400).
        status: HTTP status code, or None on transport failure.
        final_url: Requested URL (redirects are not reflected), or None on failure.
        response_time_ms: Duration of the fetch only (DNS excluded), or None.
        payload_bytes: Byte length of the response body, or None.
        title: Extracted page title, or None.
        meta_description: Extracted meta description, or None.
        keyword: Configured keyword, or None when not configured.
        keyword_present: Whether the keyword occurs in the HTML body, or None.
        dns_a: Resolved IPv4 addresses, in resolver order.
        dns_aaaa: Resolved IPv6 addresses, in resolver order.
        ssl_days_remaining: Reserved for certificate expiry data, always None.
        error: Error description if the probe raised, None otherwise.
    """

    timestamp: datetime
    url: str
    ok: bool
    status: int | None = None
    final_url: str | None = None
    response_time_ms: int | None = None
    payload_bytes: int | None = None
    title: str | None = None
    meta_description: str | None = None
    keyword: str | None = None
    keyword_present: bool | None = None
    dns_a: tuple[str, ...] = ()
    dns_aaaa: tuple[str, ...] = ()
    ssl_days_remaining: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class KpiSummary:
    """Global totals over the last 24 hours.

    ``uptime`` and ``avg_response_ms`` are None when there is no data.
    """

    count: int
    failures: int
    uptime: float | None
    avg_response_ms: int | None


@dataclass(frozen=True)
class UrlRollup:
    """Per-URL statistics over the full record history."""

    url: str
    checks: int
    failures: int
    last_checked_at: datetime
    last_status: int | None
    last_ok: bool
    last_error: str | None
    avg_response_ms: int | None
    p95_response_ms: int | None
    recent_response_ms: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class FailureEntry:
    """One row of the recent failures feed."""

    timestamp: datetime
    url: str
    status: int | None
    error: str | None


@dataclass(frozen=True)
class MetricsSummary:
    """Snapshot of operational metrics computed at ``generated_at``."""

    generated_at: datetime
    kpis: KpiSummary
    urls: list[UrlRollup] = field(default_factory=list)
    recent_failures: list[FailureEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Return a JSON-serializable representation."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "kpis_24h": {
                "count": self.kpis.count,
                "failures": self.kpis.failures,
                "uptime": self.kpis.uptime,
                "avg_response_ms": self.kpis.avg_response_ms,
            },
            "urls": [
                {
                    "url": rollup.url,
                    "checks": rollup.checks,
                    "failures": rollup.failures,
                    "last_checked_at": rollup.last_checked_at.isoformat(),
                    "last_status": rollup.last_status,
                    "last_ok": rollup.last_ok,
                    "last_error": rollup.last_error,
                    "avg_response_ms": rollup.avg_response_ms,
                    "p95_response_ms": rollup.p95_response_ms,
                    "recent_response_ms": list(rollup.recent_response_ms),
                }
                for rollup in self.urls
            ],
            "recent_failures": [
                {
                    "timestamp": entry.timestamp.isoformat(),
                    "url": entry.url,
                    "status": entry.status,
                    "error": entry.error,
                }
                for entry in self.recent_failures
            ],
        }


@dataclass(frozen=True)
class FailureDigest:
    """Batched failure report for a single run."""

    subject: str
    body: str
    failures: tuple[CheckResult, ...]
