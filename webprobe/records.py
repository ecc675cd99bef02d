"""Assembly of probe outputs into fixed-width result records.

Storage and aggregation address record fields by position, so every record
is written with the same columns in the same order. Absent values are kept
as explicit ``None`` entries rather than omitted.
"""

from dataclasses import dataclass, field
from datetime import datetime

from .models import CheckResult

# Column order of a stored record. Matches the CheckResult field order.
RECORD_COLUMNS = (
    "timestamp",
    "url",
    "ok",
    "status",
    "final_url",
    "response_time_ms",
    "payload_bytes",
    "title",
    "meta_description",
    "keyword",
    "keyword_present",
    "dns_a",
    "dns_aaaa",
    "ssl_days_remaining",
    "error",
)

# Separator used when DNS address lists are flattened into a single column.
DNS_SEPARATOR = " | "


@dataclass
class ProbeOutcome:
    """Mutable scratch state filled in by the prober while a probe runs."""

    timestamp: datetime
    url: str
    keyword: str | None = None
    status: int | None = None
    final_url: str | None = None
    response_time_ms: int | None = None
    payload_bytes: int | None = None
    title: str | None = None
    meta_description: str | None = None
    keyword_present: bool | None = None
    dns_a: list[str] = field(default_factory=list)
    dns_aaaa: list[str] = field(default_factory=list)
    error: str | None = None


def _is_ok(status: int | None, error: str | None) -> bool:
    if error is not None or status is None:
        return False
    return 200 <= status < 400


def build_record(outcome: ProbeOutcome) -> CheckResult:
    """Freeze a probe outcome into a CheckResult.

    When the outcome carries an error, every fetch-dependent field is
    dropped so a failed probe never reports partial fetch data.

    Args:
        outcome: Values collected during the probe.

    Returns:
        Immutable CheckResult.
    """
    keyword = outcome.keyword or None

    if outcome.error is not None:
        return CheckResult(
            timestamp=outcome.timestamp,
            url=outcome.url,
            ok=False,
            keyword=keyword,
            dns_a=tuple(outcome.dns_a),
            dns_aaaa=tuple(outcome.dns_aaaa),
            error=outcome.error,
        )

    return CheckResult(
        timestamp=outcome.timestamp,
        url=outcome.url,
        ok=_is_ok(outcome.status, outcome.error),
        status=outcome.status,
        final_url=outcome.final_url if outcome.final_url is not None else outcome.url,
        response_time_ms=outcome.response_time_ms,
        payload_bytes=outcome.payload_bytes,
        title=outcome.title,
        meta_description=outcome.meta_description,
        keyword=keyword,
        keyword_present=outcome.keyword_present if keyword is not None else None,
        dns_a=tuple(outcome.dns_a),
        dns_aaaa=tuple(outcome.dns_aaaa),
        ssl_days_remaining=None,
        error=None,
    )


def _bool_to_column(value: bool | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


def _column_to_bool(value: int | None) -> bool | None:
    if value is None:
        return None
    return bool(value)


def record_to_row(record: CheckResult) -> tuple:
    """Flatten a record into a row with one value per RECORD_COLUMNS entry."""
    return (
        record.timestamp.isoformat(),
        record.url,
        1 if record.ok else 0,
        record.status,
        record.final_url,
        record.response_time_ms,
        record.payload_bytes,
        record.title,
        record.meta_description,
        record.keyword,
        _bool_to_column(record.keyword_present),
        DNS_SEPARATOR.join(record.dns_a),
        DNS_SEPARATOR.join(record.dns_aaaa),
        record.ssl_days_remaining,
        record.error,
    )


def _split_dns(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(DNS_SEPARATOR.strip()) if part.strip())


def row_to_record(row) -> CheckResult:
    """Rebuild a record from a positional row produced by record_to_row.

    Args:
        row: Sequence (or sqlite3.Row) with exactly len(RECORD_COLUMNS) values.

    Raises:
        ValueError: If the row width does not match RECORD_COLUMNS.
    """
    values = tuple(row)
    if len(values) != len(RECORD_COLUMNS):
        raise ValueError(f"Expected {len(RECORD_COLUMNS)} columns, got {len(values)}")

    (
        timestamp,
        url,
        ok,
        status,
        final_url,
        response_time_ms,
        payload_bytes,
        title,
        meta_description,
        keyword,
        keyword_present,
        dns_a,
        dns_aaaa,
        ssl_days_remaining,
        error,
    ) = values

    return CheckResult(
        timestamp=datetime.fromisoformat(timestamp),
        url=url,
        ok=bool(ok),
        status=status,
        final_url=final_url,
        response_time_ms=response_time_ms,
        payload_bytes=payload_bytes,
        title=title,
        meta_description=meta_description,
        keyword=keyword,
        keyword_present=_column_to_bool(keyword_present),
        dns_a=_split_dns(dns_a),
        dns_aaaa=_split_dns(dns_aaaa),
        ssl_days_remaining=ssl_days_remaining,
        error=error,
    )


def record_to_dict(record: CheckResult) -> dict:
    """Return a JSON-serializable dict keyed by RECORD_COLUMNS, in order."""
    return {
        "timestamp": record.timestamp.isoformat(),
        "url": record.url,
        "ok": record.ok,
        "status": record.status,
        "final_url": record.final_url,
        "response_time_ms": record.response_time_ms,
        "payload_bytes": record.payload_bytes,
        "title": record.title,
        "meta_description": record.meta_description,
        "keyword": record.keyword,
        "keyword_present": record.keyword_present,
        "dns_a": list(record.dns_a),
        "dns_aaaa": list(record.dns_aaaa),
        "ssl_days_remaining": record.ssl_days_remaining,
        "error": record.error,
    }
