"""Rolling metrics computed from the record history.

Everything here is a pure function of the records passed in and ``now``:
the same inputs always give the same summary. Nothing is cached or stored.
"""

import math
from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from .models import CheckResult, FailureEntry, KpiSummary, MetricsSummary, UrlRollup

KPI_WINDOW = timedelta(hours=24)

# Latency samples kept per URL for sparkline-style trend display.
SPARKLINE_SAMPLES = 20

RECENT_FAILURES_LIMIT = 20

P95 = 0.95


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentile_nearest_rank(samples: Sequence[int], fraction: float) -> int | None:
    """Nearest-rank percentile: sorted ascending, rank = ceil(fraction * n).

    Args:
        samples: Latency samples in any order.
        fraction: Percentile as a fraction in (0, 1].

    Returns:
        The sample at the computed rank, or None if there are no samples.
    """
    if not samples:
        return None
    ordered = sorted(samples)
    # Decimal keeps e.g. 0.95 * 20 at exactly 19.
    rank = max(1, math.ceil(Decimal(str(fraction)) * len(ordered)))
    return ordered[min(rank, len(ordered)) - 1]


def _mean(samples: Sequence[int]) -> int | None:
    if not samples:
        return None
    return round_half_up(sum(samples) / len(samples))


def _latencies(records: Sequence[CheckResult]) -> list[int]:
    return [r.response_time_ms for r in records if r.response_time_ms is not None]


def compute_kpis(records: Sequence[CheckResult], now: datetime) -> KpiSummary:
    """Totals for records with ``timestamp > now - 24h``.

    Uptime and average latency are None when the window is empty.
    """
    since = now - KPI_WINDOW
    window = [r for r in records if r.timestamp > since]

    count = len(window)
    failures = sum(1 for r in window if not r.ok)
    uptime = 1 - failures / count if count else None

    return KpiSummary(
        count=count,
        failures=failures,
        uptime=uptime,
        avg_response_ms=_mean(_latencies(window)),
    )


def compute_rollups(records: Sequence[CheckResult], samples: int = SPARKLINE_SAMPLES) -> list[UrlRollup]:
    """Per-URL statistics over the full history, grouped by exact ``url``.

    Records are ordered by timestamp with store order breaking ties, so the
    last element of each group is its most recent record.
    """
    groups: dict[str, list[tuple[datetime, int, CheckResult]]] = {}
    for index, record in enumerate(records):
        groups.setdefault(record.url, []).append((record.timestamp, index, record))

    rollups = []
    for url in sorted(groups):
        ordered = [record for _, _, record in sorted(groups[url], key=lambda item: (item[0], item[1]))]
        last = ordered[-1]
        latencies = _latencies(ordered)

        rollups.append(
            UrlRollup(
                url=url,
                checks=len(ordered),
                failures=sum(1 for r in ordered if not r.ok),
                last_checked_at=last.timestamp,
                last_status=last.status,
                last_ok=last.ok,
                last_error=last.error,
                avg_response_ms=_mean(latencies),
                p95_response_ms=percentile_nearest_rank(latencies, P95),
                recent_response_ms=latencies[-samples:] if samples > 0 else [],
            )
        )
    return rollups


def recent_failures(records: Sequence[CheckResult], limit: int = RECENT_FAILURES_LIMIT) -> list[FailureEntry]:
    """Most recent failed records, newest first.

    Among equal timestamps the later-stored record comes first.
    """
    failed = [(record.timestamp, index, record) for index, record in enumerate(records) if not record.ok]
    failed.sort(key=lambda item: (item[0], item[1]), reverse=True)

    return [
        FailureEntry(timestamp=record.timestamp, url=record.url, status=record.status, error=record.error)
        for _, _, record in failed[:limit]
    ]


def compute_summary(
    records: Sequence[CheckResult],
    now: datetime,
    samples: int = SPARKLINE_SAMPLES,
    failures_limit: int = RECENT_FAILURES_LIMIT,
) -> MetricsSummary:
    """Compute the full metrics summary for a record snapshot.

    Args:
        records: Record history in store (insertion) order.
        now: Reference time for the 24h window (timezone-aware).
        samples: Number of recent latency samples kept per URL.
        failures_limit: Maximum length of the recent failures feed.

    Returns:
        MetricsSummary relative to ``now``.
    """
    return MetricsSummary(
        generated_at=now,
        kpis=compute_kpis(records, now),
        urls=compute_rollups(records, samples),
        recent_failures=recent_failures(records, failures_limit),
    )


def _format_optional(value: object, suffix: str = "") -> str:
    return "no data" if value is None else f"{value}{suffix}"


def format_summary(summary: MetricsSummary) -> str:
    """Render a summary as plain text for terminal output."""
    kpis = summary.kpis
    uptime = None if kpis.uptime is None else f"{kpis.uptime * 100:.2f}%"
    lines = [
        f"Generated at: {summary.generated_at.isoformat(timespec='seconds')}",
        f"Checks (24h): {kpis.count}",
        f"Failures (24h): {kpis.failures}",
        f"Uptime (24h): {_format_optional(uptime)}",
        f"Avg response (24h): {_format_optional(kpis.avg_response_ms, ' ms')}",
    ]

    if summary.urls:
        lines.append("")
        lines.append("Per URL:")
        for rollup in summary.urls:
            state = "UP" if rollup.last_ok else "DOWN"
            lines.append(
                f"  {rollup.url}  {state}  status={_format_optional(rollup.last_status)}  "
                f"avg={_format_optional(rollup.avg_response_ms, ' ms')}  "
                f"p95={_format_optional(rollup.p95_response_ms, ' ms')}  checks={rollup.checks}"
            )

    if summary.recent_failures:
        lines.append("")
        lines.append(f"Recent failures (last {len(summary.recent_failures)}):")
        for entry in summary.recent_failures:
            lines.append(
                f"  {entry.timestamp.isoformat(timespec='seconds')}  {entry.url}  "
                f"{entry.status if entry.status is not None else ''}  {entry.error or ''}".rstrip()
            )

    return "\n".join(lines)
