"""
Sync scheduler -- the archive loop that keeps remote state fresh.

One cycle is: collect paths -> build archive -> upload -> prune ->
remove the local artifact. The loop runs one cycle, sleeps for the
configured interval, and repeats until the cancellation flag is set.
A failed cycle is logged and the loop carries on with the next one.

At most one cycle runs at a time. Abrupt termination is tolerated:
uploads overwrite by name and deletes are independent per name, so
the next run simply picks up where this one stopped.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from .builder import ArchiveBuilder
from .collector import collect_paths
from .config import PersistenceConfig
from .errors import ArchiveNotFoundError, PersistenceError
from .models import LATEST, CycleResult
from .restore import RestoreResolver
from .retention import RetentionManager
from .store import RemoteArchiveStore

logger = logging.getLogger("hfpersist.scheduler")


class SyncState:
    """Thread-safe runtime state of the scheduler.

    Holds the interval, the cancellation flag and cycle bookkeeping.
    Nothing here is persisted; the remote store is the source of truth.
    """

    def __init__(self, interval: int):
        self._lock = threading.Lock()
        self.interval = interval
        self.cancelled = threading.Event()
        self.running: bool = False
        self.started_at: Optional[datetime] = None
        self.last_cycle: Optional[datetime] = None
        self.last_archive: Optional[str] = None
        self.cycles_completed: int = 0
        self.cycles_failed: int = 0
        self.errors: list[str] = []

    def snapshot(self) -> dict:
        """Return a serializable snapshot of current state."""
        with self._lock:
            return {
                "running": self.running,
                "interval": self.interval,
                "cancelled": self.cancelled.is_set(),
                "started_at": self.started_at.isoformat() if self.started_at else None,
                "last_cycle": self.last_cycle.isoformat() if self.last_cycle else None,
                "last_archive": self.last_archive,
                "cycles_completed": self.cycles_completed,
                "cycles_failed": self.cycles_failed,
                "recent_errors": self.errors[-10:],
            }

    def mark_started(self) -> None:
        with self._lock:
            self.running = True
            self.started_at = datetime.now(timezone.utc)

    def mark_stopped(self) -> None:
        with self._lock:
            self.running = False

    def record_success(self, archive_name: str) -> None:
        with self._lock:
            self.last_cycle = datetime.now(timezone.utc)
            self.last_archive = archive_name
            self.cycles_completed += 1

    def record_error(self, error: str) -> None:
        """Record a failed cycle, keeping only the last 50 errors."""
        with self._lock:
            self.last_cycle = datetime.now(timezone.utc)
            self.cycles_failed += 1
            ts = self.last_cycle.isoformat()
            self.errors.append(f"[{ts}] {error}")
            if len(self.errors) > 50:
                self.errors = self.errors[-50:]


class SyncScheduler:
    """Drives the archive cycle and the startup restore.

    Collaborators default to ones built from ``config``; tests pass
    their own.

    Args:
        config: Persistence configuration.
        store: Remote namespace.
        builder: Archive packer.
        retention: Retention policy enforcer.
        resolver: Restore resolver.
    """

    def __init__(
        self,
        config: PersistenceConfig,
        store: RemoteArchiveStore,
        builder: Optional[ArchiveBuilder] = None,
        retention: Optional[RetentionManager] = None,
        resolver: Optional[RestoreResolver] = None,
    ):
        self.config = config
        self.store = store
        self.builder = builder or ArchiveBuilder(
            prefix=config.archive_prefix,
            extension=config.archive_extension,
            work_dir=config.work_dir,
            compression_level=config.compression_level,
        )
        self.retention = retention or RetentionManager(
            store, config.archive_prefix, config.archive_extension,
        )
        self.resolver = resolver or RestoreResolver(
            store,
            self.builder,
            config.archive_prefix,
            config.archive_extension,
            config.work_dir,
        )
        self.state = SyncState(config.sync_interval_seconds)
        self._thread: Optional[threading.Thread] = None

    def run_cycle(self) -> CycleResult:
        """Run one archive -> upload -> prune cycle.

        Errors propagate so one-shot callers can turn them into an exit
        code. The local artifact is removed after the upload attempt,
        successful or not, except in dry-run mode.

        Returns:
            CycleResult: What the cycle did.
        """
        logger.info("Starting archive cycle")
        paths = collect_paths(self.config.archive_paths)
        archive = self.builder.build(paths, self.config.exclude_list)

        if self.config.dry_run:
            logger.info("Dry run: archive created, skipping upload")
            logger.info("Dry run: archive kept for inspection at %s (%d bytes)", archive.local_path, archive.size)
            return CycleResult(
                archive_name=archive.name,
                local_path=archive.local_path,
                dry_run=True,
            )

        try:
            self.store.upload(archive.local_path, archive.name)
            pruned = self.retention.enforce(self.config.max_archives, keep=archive.name)
        finally:
            if archive.local_path is not None:
                archive.local_path.unlink(missing_ok=True)

        logger.info("Archive cycle complete: %s uploaded to %s", archive.name, self.store.namespace)
        return CycleResult(archive_name=archive.name, uploaded=True, pruned=pruned)

    def run_guarded(self) -> Optional[CycleResult]:
        """Run one cycle, logging instead of raising.

        Returns:
            The cycle result, or None if the cycle failed.
        """
        try:
            result = self.run_cycle()
        except PersistenceError as exc:
            logger.error("Archive cycle failed (%s): %s", self.store.namespace, exc)
            self.state.record_error(str(exc))
            return None
        except Exception as exc:
            logger.exception("Unexpected error in archive cycle: %s", exc)
            self.state.record_error(f"unexpected: {exc}")
            return None

        self.state.record_success(result.archive_name)
        return result

    def run_forever(self) -> None:
        """Cycle and sleep until ``stop()`` is called."""
        self.state.mark_started()
        logger.info("Sync loop starting, interval %ds", self.state.interval)

        try:
            while not self.state.cancelled.is_set():
                self.run_guarded()
                if self.state.cancelled.is_set():
                    break
                logger.info("Next sync in %d seconds", self.state.interval)
                self.state.cancelled.wait(timeout=self.state.interval)
        finally:
            self.state.mark_stopped()
            logger.info("Sync loop stopped")

    def start_background(self) -> threading.Thread:
        """Run the loop in a daemon thread."""
        self._thread = threading.Thread(target=self.run_forever, name="hfpersist-sync", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Set the cancellation flag and wait for a background loop."""
        self.state.cancelled.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def startup_restore(self, target: str = LATEST) -> Optional[str]:
        """Restore once before the loop starts. Never raises.

        Returns:
            The restored archive name, or None if nothing was restored.
        """
        logger.info("Running startup restore (%s)", target)
        try:
            name = self.resolver.restore_target(target, self.config.restore_path)
        except ArchiveNotFoundError:
            logger.info("No archive to restore, starting fresh")
            return None
        except PersistenceError as exc:
            logger.warning("Startup restore failed, continuing: %s", exc)
            return None
        except Exception as exc:
            logger.warning("Startup restore failed unexpectedly, continuing: %s", exc)
            return None

        logger.info("Startup restore complete: %s", name)
        return name
