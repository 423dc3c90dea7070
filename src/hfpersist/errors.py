"""
Exception taxonomy for archive persistence.

Every failure the lifecycle can produce is a PersistenceError. The
daemon loop catches them at the cycle boundary; one-shot commands turn
the first one into a non-zero exit code.
"""

from __future__ import annotations

from typing import Optional


class PersistenceError(Exception):
    """Base class for all hfpersist errors."""


class ConfigInvalidError(PersistenceError):
    """Raised when configuration is malformed or missing credentials.

    Attributes:
        problems: Individual validation messages.
    """

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid configuration")


class NoValidPathsError(PersistenceError):
    """Raised when none of the configured archive paths exist."""


class PackError(PersistenceError):
    """Raised when the archive could not be written."""

    def __init__(self, message: str, archive_name: str):
        self.archive_name = archive_name
        super().__init__(f"{message} [{archive_name}]")


class StoreError(PersistenceError):
    """Base class for remote store failures.

    Attributes:
        archive_name: Archive involved, when the operation targets one.
        namespace: Remote identifier (dataset id or directory).
    """

    def __init__(
        self,
        message: str,
        archive_name: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        self.archive_name = archive_name
        self.namespace = namespace
        context = ", ".join(
            part for part in (archive_name, namespace) if part
        )
        super().__init__(f"{message} [{context}]" if context else message)


class ListError(StoreError):
    """Listing the remote namespace failed."""


class UploadError(StoreError):
    """Uploading an archive failed."""


class DownloadError(StoreError):
    """Downloading an archive failed."""


class DeleteError(StoreError):
    """Deleting a remote archive failed."""


class RestoreError(PersistenceError):
    """Raised when a downloaded archive cannot be unpacked."""

    def __init__(self, message: str, archive_name: str):
        self.archive_name = archive_name
        super().__init__(f"{message} [{archive_name}]")


class ArchiveNotFoundError(PersistenceError):
    """No archive exists in the remote namespace yet.

    This is the expected state on a first run, not a transport failure.
    """


class LaunchError(PersistenceError):
    """The supervised application command could not be started."""
