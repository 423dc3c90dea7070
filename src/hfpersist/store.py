"""
Remote archive stores -- where the archives live between boots.

Every remote call goes through one of four operations: list, upload,
download, delete. The lifecycle code above this module never sees a
transport detail or a credential.

HuggingFace: A dataset repository on the Hugging Face Hub.
Local: A plain directory. For USB drives, NAS mounts, and tests.
"""

from __future__ import annotations

import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from .config import PersistenceConfig
from .errors import DeleteError, DownloadError, ListError, UploadError
from .models import StoreBackendType, matches_scheme

logger = logging.getLogger("hfpersist.store")


class RemoteArchiveStore(ABC):
    """Abstract remote namespace holding one archive stream."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name."""

    @property
    @abstractmethod
    def namespace(self) -> str:
        """Identifier of the remote namespace, for log context."""

    @abstractmethod
    def list(self, prefix: str, extension: str) -> list[str]:
        """List archive names matching the naming scheme.

        Args:
            prefix: Archive name prefix.
            extension: Archive extension without the leading dot.

        Returns:
            Matching names in no particular order.

        Raises:
            ListError: If the namespace could not be listed.
        """

    @abstractmethod
    def upload(self, local_path: Path, remote_name: str) -> None:
        """Upload an archive. Uploading an existing name overwrites it.

        Raises:
            UploadError: If the upload failed.
        """

    @abstractmethod
    def download(self, remote_name: str, dest_dir: Path) -> Path:
        """Download an archive into a local directory.

        Returns:
            Path to the downloaded file.

        Raises:
            DownloadError: If the archive could not be fetched.
        """

    @abstractmethod
    def delete(self, remote_name: str) -> None:
        """Delete one archive.

        Raises:
            DeleteError: If the archive could not be deleted.
        """


class HuggingFaceStore(RemoteArchiveStore):
    """Archives stored as files in a Hugging Face dataset repository.

    Args:
        dataset_id: Repository id, e.g. ``user/backups``.
        token: Hub access token.
        api: Pre-built ``HfApi`` client. Created lazily when omitted.
    """

    REPO_TYPE = "dataset"

    def __init__(self, dataset_id: str, token: str, api: Optional[Any] = None):
        self.dataset_id = dataset_id
        self._token = token
        self._api = api

    @property
    def name(self) -> str:
        return "huggingface"

    @property
    def namespace(self) -> str:
        return self.dataset_id

    @property
    def api(self) -> Any:
        """The Hub client, created on first use."""
        if self._api is None:
            try:
                from huggingface_hub import HfApi
            except ImportError as exc:
                raise RuntimeError(
                    "Hugging Face store requires huggingface_hub: pip install huggingface_hub"
                ) from exc
            self._api = HfApi(token=self._token or None)
        return self._api

    def list(self, prefix: str, extension: str) -> list[str]:
        try:
            files = self.api.list_repo_files(repo_id=self.dataset_id, repo_type=self.REPO_TYPE)
        except Exception as exc:
            logger.error("Listing %s failed: %s", self.dataset_id, exc)
            raise ListError(f"list failed: {exc}", namespace=self.dataset_id) from exc
        return [f for f in files if matches_scheme(f, prefix, extension)]

    def upload(self, local_path: Path, remote_name: str) -> None:
        try:
            self.api.upload_file(
                path_or_fileobj=str(local_path),
                path_in_repo=remote_name,
                repo_id=self.dataset_id,
                repo_type=self.REPO_TYPE,
                commit_message=f"Upload archive {remote_name}",
            )
        except Exception as exc:
            logger.error("Upload of %s to %s failed: %s", remote_name, self.dataset_id, exc)
            raise UploadError(f"upload failed: {exc}", remote_name, self.dataset_id) from exc
        logger.info("Archive uploaded: %s -> %s", remote_name, self.dataset_id)

    def download(self, remote_name: str, dest_dir: Path) -> Path:
        dest_dir = Path(dest_dir)
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            local_path = self.api.hf_hub_download(
                repo_id=self.dataset_id,
                filename=remote_name,
                repo_type=self.REPO_TYPE,
                local_dir=str(dest_dir),
            )
        except Exception as exc:
            logger.error("Download of %s from %s failed: %s", remote_name, self.dataset_id, exc)
            raise DownloadError(f"download failed: {exc}", remote_name, self.dataset_id) from exc
        logger.info("Archive downloaded: %s", remote_name)
        return Path(local_path)

    def delete(self, remote_name: str) -> None:
        try:
            self.api.delete_file(
                path_in_repo=remote_name,
                repo_id=self.dataset_id,
                repo_type=self.REPO_TYPE,
                commit_message=f"Delete archive {remote_name}",
            )
        except Exception as exc:
            raise DeleteError(f"delete failed: {exc}", remote_name, self.dataset_id) from exc
        logger.info("Archive deleted: %s", remote_name)


class LocalArchiveStore(RemoteArchiveStore):
    """A local directory used as the remote namespace."""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()

    @property
    def name(self) -> str:
        return "local"

    @property
    def namespace(self) -> str:
        return str(self.root)

    def list(self, prefix: str, extension: str) -> list[str]:
        if not self.root.exists():
            return []
        try:
            return [
                p.name for p in self.root.iterdir()
                if p.is_file() and matches_scheme(p.name, prefix, extension)
            ]
        except OSError as exc:
            raise ListError(f"list failed: {exc}", namespace=self.namespace) from exc

    def upload(self, local_path: Path, remote_name: str) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            shutil.copy2(local_path, self._resolve(remote_name))
        except (OSError, ValueError) as exc:
            logger.error("Local upload of %s failed: %s", remote_name, exc)
            raise UploadError(f"upload failed: {exc}", remote_name, self.namespace) from exc
        logger.info("Archive stored: %s -> %s", remote_name, self.root)

    def _resolve(self, remote_name: str) -> Path:
        """Path of an archive inside the root; names may not contain separators."""
        if not remote_name or remote_name in (".", "..") or "/" in remote_name or os.sep in remote_name:
            raise ValueError(f"invalid archive name: {remote_name!r}")
        return self.root / remote_name

    def download(self, remote_name: str, dest_dir: Path) -> Path:
        try:
            source = self._resolve(remote_name)
        except ValueError as exc:
            raise DownloadError(f"download failed: {exc}", remote_name, self.namespace) from exc
        dest = Path(dest_dir) / remote_name
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
        except OSError as exc:
            logger.error("Local download of %s failed: %s", remote_name, exc)
            raise DownloadError(f"download failed: {exc}", remote_name, self.namespace) from exc
        logger.info("Archive fetched: %s", remote_name)
        return dest

    def delete(self, remote_name: str) -> None:
        try:
            self._resolve(remote_name).unlink()
        except (OSError, ValueError) as exc:
            raise DeleteError(f"delete failed: {exc}", remote_name, self.namespace) from exc
        logger.info("Archive deleted: %s", remote_name)


def create_store(config: PersistenceConfig) -> RemoteArchiveStore:
    """Factory function to create the configured store.

    Args:
        config: Persistence configuration.

    Returns:
        Instantiated RemoteArchiveStore.

    Raises:
        ValueError: If the backend type is not supported.
    """
    if config.store_backend == StoreBackendType.HUGGINGFACE:
        return HuggingFaceStore(config.dataset_id, config.hf_token)
    if config.store_backend == StoreBackendType.LOCAL:
        if config.local_store_path is None:
            raise ValueError("local store requires local_store_path")
        return LocalArchiveStore(config.local_store_path)
    raise ValueError(f"Unsupported store backend: {config.store_backend}")
