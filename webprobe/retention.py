"""Retention pruning of old records."""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from .database import ResultStore
from .models import CheckResult

logger = logging.getLogger(__name__)


def retention_cutoff(now: datetime, retention_days: int) -> datetime:
    """Records with a timestamp before this instant are expired."""
    return now - timedelta(days=retention_days)


def is_expired(record: CheckResult, cutoff: datetime) -> bool:
    return record.timestamp < cutoff


def partition_expired(
    records: Sequence[CheckResult],
    retention_days: int,
    now: datetime,
) -> tuple[list[CheckResult], list[CheckResult]]:
    """Split records into (to_delete, to_keep) for a retention window.

    Args:
        records: Record history.
        retention_days: Maximum record age in days.
        now: Reference time (timezone-aware).

    Returns:
        Tuple of (expired records, retained records), each in input order.
    """
    cutoff = retention_cutoff(now, retention_days)
    expired: list[CheckResult] = []
    kept: list[CheckResult] = []
    for record in records:
        (expired if is_expired(record, cutoff) else kept).append(record)
    return expired, kept


def prune(store: ResultStore, retention_days: int, now: datetime) -> int:
    """Delete expired records from the store.

    Returns:
        Number of deleted records.

    Raises:
        DatabaseError: If the deletion fails.
    """
    cutoff = retention_cutoff(now, retention_days)
    deleted = store.delete(lambda record: is_expired(record, cutoff))
    if deleted > 0:
        logger.info("Pruned %d check records older than %d days", deleted, retention_days)
    return deleted
