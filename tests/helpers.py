"""Record factories shared by the test modules."""

from datetime import datetime, timedelta, timezone

from webprobe.models import CheckResult

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))


def make_record(
    url: str = "https://example.com/",
    ok: bool = True,
    status: int | None = 200,
    response_time_ms: int | None = 100,
    timestamp: datetime | None = None,
    error: str | None = None,
    **kwargs,
) -> CheckResult:
    """Build a CheckResult with sensible defaults for tests."""
    kwargs.setdefault("final_url", url if error is None else None)
    return CheckResult(
        timestamp=timestamp or NOW,
        url=url,
        ok=ok,
        status=status,
        response_time_ms=response_time_ms,
        error=error,
        **kwargs,
    )
