"""
Retention -- keep the remote namespace at or under ``max_archives``.

Names sort oldest first, so the excess is always taken from the front
of the sorted list and the newest archives survive.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import DeleteError
from .store import RemoteArchiveStore

logger = logging.getLogger("hfpersist.retention")


def select_excess(names: list[str], max_archives: int, keep: Optional[str] = None) -> list[str]:
    """Pick the archives retention should delete.

    When ``keep`` names the archive uploaded in this cycle it is left out
    of the count, and one extra slot is reserved for it: with ``count``
    older archives, the oldest ``count - max_archives + 1`` go once
    ``count >= max_archives``. Without ``keep`` the plain excess over
    ``max_archives`` goes.

    Args:
        names: Archive names currently in the namespace.
        max_archives: Retention limit, at least 1.
        keep: Freshly uploaded archive that must survive.

    Returns:
        list[str]: Names to delete, oldest first.
    """
    if max_archives < 1:
        raise ValueError("max_archives must be at least 1")

    candidates = sorted(n for n in names if n != keep)
    if keep is not None:
        if len(candidates) >= max_archives:
            return candidates[: len(candidates) - max_archives + 1]
        return []

    if len(candidates) > max_archives:
        return candidates[: len(candidates) - max_archives]
    return []


class RetentionManager:
    """Deletes the oldest remote archives beyond the retention limit.

    Args:
        store: Remote namespace to prune.
        prefix: Archive name prefix.
        extension: Archive extension.
    """

    def __init__(self, store: RemoteArchiveStore, prefix: str, extension: str):
        self.store = store
        self.prefix = prefix
        self.extension = extension

    def enforce(self, max_archives: int, keep: Optional[str] = None) -> list[str]:
        """Prune the namespace down to ``max_archives``.

        A failed delete is logged and skipped; the remaining names are
        still processed.

        Args:
            max_archives: Retention limit.
            keep: Archive uploaded in the current cycle.

        Returns:
            list[str]: Names that were actually deleted.

        Raises:
            ListError: If the namespace could not be listed.
        """
        names = self.store.list(self.prefix, self.extension)
        to_delete = select_excess(names, max_archives, keep)

        pruned: list[str] = []
        for name in to_delete:
            try:
                self.store.delete(name)
            except DeleteError as exc:
                logger.error("Failed to delete old archive %s: %s", name, exc)
                continue
            logger.info("Deleted old archive: %s", name)
            pruned.append(name)

        logger.info(
            "Retention complete on %s: %d archive(s) kept, %d deleted",
            self.store.namespace, len(names) - len(pruned), len(pruned),
        )
        return pruned
