"""Failure digest construction for a single run's batch."""

from collections.abc import Sequence

from .models import CheckResult, FailureDigest

SECTION_SEPARATOR = "\n---\n"


def _text(value: object) -> str:
    """Render an optional value; None becomes an empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_failure(record: CheckResult) -> str:
    """Render one failed record as a digest section."""
    return (
        f"Timestamp: {record.timestamp.isoformat(sep=' ', timespec='seconds')}\n"
        f"URL: {record.url}\n"
        f"OK: {_text(record.ok)}\n"
        f"Status: {_text(record.status)}\n"
        f"Error: {_text(record.error)}\n"
    )


def build_failure_digest(
    batch: Sequence[CheckResult],
    location: str | None = None,
) -> FailureDigest | None:
    """Build the digest for one run, or None when every probe succeeded.

    Args:
        batch: Records produced by this run only.
        location: Where the full results live, appended to the body if given.

    Returns:
        FailureDigest covering every failed record of the batch, in batch order.
    """
    failures = tuple(record for record in batch if not record.ok)
    if not failures:
        return None

    subject = f"Website check: {len(failures)} failure(s) detected"
    body = "One or more URLs failed:\n\n" + SECTION_SEPARATOR.join(format_failure(r) for r in failures)
    if location:
        body += f"\nResults: {location}"

    return FailureDigest(subject=subject, body=body, failures=failures)


def resolve_recipients(recipients: Sequence[str], default: str | None) -> list[str]:
    """Return the addresses a digest should go to.

    Entries are trimmed and anything without an ``@`` is skipped. An empty
    configured list falls back to the single ``default`` address.
    """
    candidates = list(recipients) if recipients else ([default] if default else [])
    resolved = []
    for address in candidates:
        address = (address or "").strip()
        if address and "@" in address:
            resolved.append(address)
    return resolved
