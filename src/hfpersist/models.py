"""
Data models for the archive lifecycle.

Archive names double as the ordering key: a fixed-width, zero-padded
timestamp makes lexicographic order equal to creation order, so both
retention and "latest" resolution can simply sort names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
LATEST = "latest"


class StoreBackendType(str, Enum):
    """Supported remote namespaces."""

    HUGGINGFACE = "huggingface"
    LOCAL = "local"


class SourcePath(BaseModel):
    """A filesystem location to include in an archive."""

    path: Path

    @property
    def exists(self) -> bool:
        """Whether the path exists right now. Never cached."""
        return self.path.exists()

    def __str__(self) -> str:
        return str(self.path)


class Archive(BaseModel):
    """One packed snapshot produced by an archive cycle.

    Attributes:
        name: Remote file name, ``{prefix}_{timestamp}.{extension}``.
        local_path: Where the artifact sits until upload or cleanup.
        size: Artifact size in bytes.
        created_at: Timestamp the name was derived from.
    """

    name: str
    local_path: Optional[Path] = None
    size: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CycleResult(BaseModel):
    """Outcome of one archive -> upload -> prune cycle."""

    archive_name: str
    local_path: Optional[Path] = None
    uploaded: bool = False
    dry_run: bool = False
    pruned: list[str] = Field(default_factory=list)


def archive_name(prefix: str, extension: str, when: datetime) -> str:
    """Build the archive name for a point in time.

    Args:
        prefix: Archive prefix from config.
        extension: Archive extension without the leading dot.
        when: Creation time.

    Returns:
        str: e.g. ``resilio_backup_20240101_000000.tar.gz``.
    """
    return f"{prefix}_{when.strftime(TIMESTAMP_FORMAT)}.{extension}"


def matches_scheme(name: str, prefix: str, extension: str) -> bool:
    """Check whether a remote file belongs to this archive stream."""
    return name.startswith(prefix) and name.endswith(f".{extension}")
