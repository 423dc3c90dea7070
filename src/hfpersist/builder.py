"""
Archive packing and unpacking.

Archives are tarballs. The compression is picked from the configured
extension, and member names are the source paths with any leading
slash removed, the way ``tar`` stores them. Unpacking into the restore
directory therefore recreates the original layout beneath it.
"""

from __future__ import annotations

import fnmatch
import logging
import posixpath
import tarfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from .errors import PackError, RestoreError
from .models import Archive, SourcePath, archive_name

logger = logging.getLogger("hfpersist.builder")

# extension -> (tarfile compression suffix, accepts compresslevel)
_COMPRESSION = {
    "tar.gz": ("gz", True),
    "tgz": ("gz", True),
    "tar.bz2": ("bz2", True),
    "tbz2": ("bz2", True),
    "tar.xz": ("xz", False),
    "txz": ("xz", False),
    "tar": ("", False),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_excluded(name: str, patterns: Iterable[str]) -> bool:
    """Check a member name against exclude globs.

    A pattern matches the whole name or any single path component,
    so ``__pycache__`` prunes every such directory and ``*.log``
    catches log files at any depth.

    Args:
        name: Archive member name.
        patterns: Glob patterns.

    Returns:
        bool: True if the member should be left out.
    """
    parts = [p for p in name.split("/") if p]
    for pattern in patterns:
        if fnmatch.fnmatch(name, pattern):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return True
    return False


def member_name(path: Path) -> str:
    """Archive member name for a source path.

    The path is normalized, then the root and any leading ``..``
    components are removed, so every member extracts inside the
    destination directory.
    """
    parts = [p for p in posixpath.normpath(path.as_posix()).split("/") if p and p != ".."]
    return "/".join(parts) or "."


class ArchiveBuilder:
    """Packs source paths into a single named archive.

    Args:
        prefix: Archive name prefix.
        extension: Archive extension, which also selects compression.
        work_dir: Directory the archive is written to.
        compression_level: Level for gzip/bzip2.
        clock: Returns the current time; the name is derived from it.
    """

    def __init__(
        self,
        prefix: str,
        extension: str,
        work_dir: Path,
        compression_level: int = 6,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.prefix = prefix
        self.extension = extension
        self.work_dir = Path(work_dir)
        self.compression_level = compression_level
        self.clock = clock or _utcnow

    def _open_for_write(self, path: Path) -> tarfile.TarFile:
        compression, has_level = _COMPRESSION.get(self.extension, ("gz", True))
        if self.extension not in _COMPRESSION:
            logger.debug("Unknown extension %r, using gzip", self.extension)
        mode = f"w:{compression}" if compression else "w"
        if has_level:
            return tarfile.open(path, mode, compresslevel=self.compression_level)
        return tarfile.open(path, mode)

    def build(self, paths: list[SourcePath], excludes: list[str]) -> Archive:
        """Pack paths into a fresh archive.

        Args:
            paths: Validated source paths.
            excludes: Glob patterns applied to every path.

        Returns:
            Archive: Name, local path and size of the new artifact.

        Raises:
            PackError: If the archive could not be written.
        """
        created_at = self.clock()
        name = archive_name(self.prefix, self.extension, created_at)
        target = self.work_dir / name

        logger.info("Creating archive: %s", name)

        def _filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
            if is_excluded(info.name, excludes):
                logger.debug("Excluded: %s", info.name)
                return None
            return info

        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            with self._open_for_write(target) as tar:
                for source in paths:
                    tar.add(str(source.path), arcname=member_name(source.path), filter=_filter)
        except (tarfile.TarError, OSError) as exc:
            logger.error("Archive creation failed for %s: %s", name, exc)
            if target.is_file():
                target.unlink()
            raise PackError(f"archive creation failed: {exc}", name) from exc

        size = target.stat().st_size
        logger.info("Archive created: %s (%d bytes)", target, size)
        return Archive(name=name, local_path=target, size=size, created_at=created_at)

    def unpack(self, archive_path: Path, dest_dir: Path) -> int:
        """Extract an archive into a directory.

        Args:
            archive_path: Archive to extract.
            dest_dir: Target directory, created if absent.

        Returns:
            int: Number of members extracted.

        Raises:
            RestoreError: If the archive is unreadable or unsafe.
        """
        archive_path = Path(archive_path)
        dest = Path(dest_dir).expanduser()

        try:
            dest.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive_path, "r:*") as tar:
                members = tar.getmembers()
                tar.extractall(path=dest, filter="data")
        except (tarfile.TarError, OSError) as exc:
            logger.error("Extraction of %s failed: %s", archive_path.name, exc)
            raise RestoreError(f"extraction failed: {exc}", archive_path.name) from exc

        logger.info("Extracted %d entries from %s into %s", len(members), archive_path.name, dest)
        return len(members)
