"""
Restore -- turn "latest" or an explicit name into files on disk.

The remote listing is the only source of truth; nothing about past
archives is remembered locally between runs.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from .builder import ArchiveBuilder
from .errors import ArchiveNotFoundError
from .models import LATEST
from .store import RemoteArchiveStore

logger = logging.getLogger("hfpersist.restore")


class RestoreResolver:
    """Resolves restore targets and unpacks archives.

    Args:
        store: Remote namespace to restore from.
        builder: Used for unpacking.
        prefix: Archive name prefix.
        extension: Archive extension.
        work_dir: Parent of the scratch download directory.
    """

    def __init__(
        self,
        store: RemoteArchiveStore,
        builder: ArchiveBuilder,
        prefix: str,
        extension: str,
        work_dir: Path,
    ):
        self.store = store
        self.builder = builder
        self.prefix = prefix
        self.extension = extension
        self.work_dir = Path(work_dir)

    def available(self) -> list[str]:
        """Archive names, newest first."""
        return sorted(self.store.list(self.prefix, self.extension), reverse=True)

    def resolve(self, target: str = LATEST) -> str:
        """Map a restore target to a concrete archive name.

        An explicit name is returned as-is; whether it exists is only
        discovered when it is downloaded.

        Raises:
            ArchiveNotFoundError: ``latest`` requested and nothing is stored.
            ListError: The namespace could not be listed.
        """
        if target != LATEST:
            return target

        names = self.available()
        if not names:
            logger.info("No archives found in %s, this may be the first run", self.store.namespace)
            raise ArchiveNotFoundError(f"no archives in {self.store.namespace}")
        logger.info("Latest archive: %s", names[0])
        return names[0]

    def restore(self, name: str, dest_dir: Path) -> None:
        """Download an archive and unpack it into ``dest_dir``.

        The downloaded copy is removed whether or not extraction succeeds.

        Raises:
            DownloadError: The archive could not be fetched.
            RestoreError: The archive was fetched but could not be unpacked.
        """
        logger.info("Restoring archive %s from %s into %s", name, self.store.namespace, dest_dir)

        self.work_dir.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix="hfpersist-restore-", dir=self.work_dir))
        try:
            local_path = self.store.download(name, scratch)
            self.builder.unpack(local_path, dest_dir)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        logger.info("Archive restored: %s", name)

    def restore_target(self, target: str, dest_dir: Path) -> str:
        """Resolve ``target`` and restore it.

        Returns:
            str: The concrete archive name that was restored.
        """
        name = self.resolve(target)
        self.restore(name, dest_dir)
        return name
