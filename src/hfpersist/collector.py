"""
Source path collection.

Turns the configured comma list into the paths that actually exist
right now. Empty directories get a placeholder file so they still show
up in the archive and come back on restore.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import NoValidPathsError
from .models import SourcePath

logger = logging.getLogger("hfpersist.collector")

PLACEHOLDER_NAME = ".persistence_placeholder"
PLACEHOLDER_CONTENT = "# Placeholder file for persistence backup\n"


def collect_paths(raw: str) -> list[SourcePath]:
    """Resolve a comma-delimited path list into existing source paths.

    Missing paths are skipped with a warning. Order of the surviving
    entries matches the input.

    Args:
        raw: Comma-separated paths, e.g. ``"/data, /config"``.

    Returns:
        list[SourcePath]: Paths that exist on disk.

    Raises:
        NoValidPathsError: If no configured path exists.
    """
    collected: list[SourcePath] = []

    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue

        source = SourcePath(path=Path(item))
        if not source.exists:
            logger.warning("Archive path does not exist, skipping: %s", item)
            continue

        if source.path.is_dir() and not any(source.path.iterdir()):
            logger.warning("Directory is empty, writing placeholder: %s", item)
            (source.path / PLACEHOLDER_NAME).write_text(PLACEHOLDER_CONTENT, encoding="utf-8")

        collected.append(source)

    if not collected:
        logger.error("No valid archive paths found in: %s", raw)
        raise NoValidPathsError(f"no valid archive paths in {raw!r}")

    logger.debug("Collected %d archive path(s)", len(collected))
    return collected
