"""Shared fixtures."""

from pathlib import Path

import pytest

from webprobe.database import ResultStore


@pytest.fixture
def store(tmp_path: Path) -> ResultStore:
    """Create a result store backed by a temporary database."""
    result_store = ResultStore.open(str(tmp_path / "results.db"))
    yield result_store
    result_store.close()
