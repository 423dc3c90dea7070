"""Shared test fixtures for hfpersist."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from hfpersist.config import PersistenceConfig
from hfpersist.models import StoreBackendType
from hfpersist.store import LocalArchiveStore


class StepClock:
    """Deterministic clock that advances a fixed step per call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(hours=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture
def clock() -> StepClock:
    """Clock starting at 2024-01-01 00:00:00 UTC, one hour per tick."""
    return StepClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A small directory tree to archive."""
    src = tmp_path / "data"
    (src / "nested").mkdir(parents=True)
    (src / "a.txt").write_text("alpha\n")
    (src / "b.log").write_text("noise\n")
    (src / "nested" / "c.txt").write_text("gamma\n")
    (src / "nested" / "d.bin").write_bytes(bytes(range(256)))
    return src


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "remote"


@pytest.fixture
def local_store(store_root: Path) -> LocalArchiveStore:
    return LocalArchiveStore(store_root)


@pytest.fixture
def config(tmp_path: Path, source_dir: Path, store_root: Path) -> PersistenceConfig:
    """Config wired to a local store and temp directories."""
    return PersistenceConfig(
        hf_token="",
        archive_paths=str(source_dir),
        restore_path=tmp_path / "restored",
        sync_interval_seconds=60,
        max_archives=3,
        archive_prefix="A",
        archive_extension="tar.gz",
        exclude_patterns="*.log",
        log_file=tmp_path / "persistence.log",
        store_backend=StoreBackendType.LOCAL,
        local_store_path=store_root,
        work_dir=tmp_path / "work",
    )


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    """Remove handlers installed by setup_logging after each test."""
    import logging

    from hfpersist import log

    yield
    root = logging.getLogger()
    for handler in log._installed:
        root.removeHandler(handler)
        handler.close()
    log._installed.clear()
