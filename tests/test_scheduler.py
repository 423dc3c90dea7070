"""Tests for the sync scheduler."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hfpersist.builder import ArchiveBuilder
from hfpersist.config import PersistenceConfig
from hfpersist.errors import (
    ArchiveNotFoundError,
    DownloadError,
    NoValidPathsError,
    UploadError,
)
from hfpersist.scheduler import SyncScheduler, SyncState
from hfpersist.store import LocalArchiveStore


@pytest.fixture
def scheduler(config: PersistenceConfig, local_store: LocalArchiveStore, clock) -> SyncScheduler:
    builder = ArchiveBuilder("A", "tar.gz", config.work_dir, clock=clock)
    return SyncScheduler(config, local_store, builder=builder)


class TestSyncState:
    """Thread-safe bookkeeping."""

    def test_initial_snapshot(self) -> None:
        snap = SyncState(60).snapshot()
        assert snap["running"] is False
        assert snap["interval"] == 60
        assert snap["cancelled"] is False
        assert snap["cycles_completed"] == 0

    def test_record_success_and_error(self) -> None:
        state = SyncState(60)
        state.record_success("A_1.tar.gz")
        state.record_error("boom")
        assert state.cycles_completed == 1
        assert state.cycles_failed == 1
        assert state.last_archive == "A_1.tar.gz"
        assert state.snapshot()["recent_errors"][0].endswith("boom")

    def test_started_and_stopped_visible_in_snapshot(self) -> None:
        state = SyncState(60)
        state.mark_started()
        snap = state.snapshot()
        assert snap["running"] is True
        assert snap["started_at"] is not None

        state.mark_stopped()
        assert state.snapshot()["running"] is False

    def test_error_limit(self) -> None:
        state = SyncState(60)
        for i in range(60):
            state.record_error(f"error-{i}")
        assert len(state.errors) == 50


class TestRunCycle:
    """One archive -> upload -> prune pass."""

    def test_cycle_uploads_and_cleans_up(self, scheduler: SyncScheduler, local_store, config) -> None:
        result = scheduler.run_cycle()

        assert result.uploaded is True
        assert result.archive_name == "A_20240101_000000.tar.gz"
        assert local_store.list("A", "tar.gz") == [result.archive_name]
        assert not (config.work_dir / result.archive_name).exists()

    def test_repeated_cycles_respect_retention(self, scheduler: SyncScheduler, local_store) -> None:
        names = [scheduler.run_cycle().archive_name for _ in range(5)]
        assert sorted(local_store.list("A", "tar.gz")) == names[-3:]

    def test_dry_run_keeps_artifact_and_skips_upload(self, config, local_store, clock) -> None:
        config = config.model_copy(update={"hf_token": "test_token"})
        builder = ArchiveBuilder("A", "tar.gz", config.work_dir, clock=clock)
        result = SyncScheduler(config, local_store, builder=builder).run_cycle()

        assert result.dry_run is True
        assert result.uploaded is False
        assert result.local_path.exists()
        assert local_store.list("A", "tar.gz") == []

    def test_upload_failure_removes_local_and_skips_retention(self, config, clock) -> None:
        store = MagicMock()
        store.namespace = "me/ds"
        store.upload.side_effect = UploadError("nope", "A_20240101_000000.tar.gz", "me/ds")
        retention = MagicMock()
        builder = ArchiveBuilder("A", "tar.gz", config.work_dir, clock=clock)
        scheduler = SyncScheduler(config, store, builder=builder, retention=retention)

        with pytest.raises(UploadError):
            scheduler.run_cycle()

        retention.enforce.assert_not_called()
        assert list(config.work_dir.glob("*.tar.gz")) == []

    def test_retention_gets_fresh_name(self, config, local_store, clock) -> None:
        retention = MagicMock()
        retention.enforce.return_value = []
        builder = ArchiveBuilder("A", "tar.gz", config.work_dir, clock=clock)
        result = SyncScheduler(config, local_store, builder=builder, retention=retention).run_cycle()

        retention.enforce.assert_called_once_with(3, keep=result.archive_name)

    def test_no_valid_paths_propagates(self, config, local_store, tmp_path: Path) -> None:
        config = config.model_copy(update={"archive_paths": str(tmp_path / "missing")})
        with pytest.raises(NoValidPathsError):
            SyncScheduler(config, local_store).run_cycle()


class TestRunGuarded:
    """Cycle-boundary error handling."""

    def test_failure_recorded_not_raised(self, config, local_store, tmp_path: Path) -> None:
        config = config.model_copy(update={"archive_paths": str(tmp_path / "missing")})
        scheduler = SyncScheduler(config, local_store)

        assert scheduler.run_guarded() is None
        assert scheduler.state.cycles_failed == 1

    def test_unexpected_error_recorded(self, scheduler: SyncScheduler) -> None:
        scheduler.builder = MagicMock()
        scheduler.builder.build.side_effect = RuntimeError("disk on fire")
        assert scheduler.run_guarded() is None
        assert "disk on fire" in scheduler.state.errors[-1]

    def test_success_recorded(self, scheduler: SyncScheduler) -> None:
        result = scheduler.run_guarded()
        assert scheduler.state.cycles_completed == 1
        assert scheduler.state.last_archive == result.archive_name


class TestLoop:
    """Repeating cycles and cancellation."""

    def test_failed_cycle_does_not_stop_loop(self, scheduler: SyncScheduler) -> None:
        calls = []
        real_cycle = scheduler.run_cycle

        def flaky_cycle():
            calls.append(1)
            if len(calls) == 1:
                raise UploadError("transient", namespace="me/ds")
            if len(calls) == 3:
                scheduler.state.cancelled.set()
            return real_cycle()

        scheduler.run_cycle = flaky_cycle
        scheduler.state.interval = 0
        scheduler.run_forever()

        assert len(calls) == 3
        assert scheduler.state.cycles_failed == 1
        assert scheduler.state.cycles_completed == 2
        assert scheduler.state.running is False

    def test_background_thread_stops(self, scheduler: SyncScheduler) -> None:
        first_cycle = threading.Event()
        real_guarded = scheduler.run_guarded

        def guarded():
            result = real_guarded()
            first_cycle.set()
            return result

        scheduler.run_guarded = guarded
        thread = scheduler.start_background()
        assert first_cycle.wait(timeout=10)

        scheduler.stop(timeout=5)
        assert not thread.is_alive()
        assert scheduler.state.cycles_completed >= 1


class TestStartupRestore:
    """The one-shot restore before the loop."""

    def test_not_found_returns_none(self, scheduler: SyncScheduler) -> None:
        assert scheduler.startup_restore() is None

    def test_failure_returns_none(self, scheduler: SyncScheduler) -> None:
        scheduler.resolver = MagicMock()
        scheduler.resolver.restore_target.side_effect = DownloadError("gone", "A_1.tar.gz", "me/ds")
        assert scheduler.startup_restore() is None

    def test_restores_latest(self, scheduler: SyncScheduler, config) -> None:
        uploaded = scheduler.run_cycle().archive_name
        assert scheduler.startup_restore() == uploaded
        assert config.restore_path.is_dir()
        assert any(config.restore_path.rglob("a.txt"))

    def test_resolver_not_found_is_quiet(self, scheduler: SyncScheduler) -> None:
        scheduler.resolver = MagicMock()
        scheduler.resolver.restore_target.side_effect = ArchiveNotFoundError("empty")
        assert scheduler.startup_restore("latest") is None
