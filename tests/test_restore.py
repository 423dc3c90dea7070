"""Tests for restore resolution and extraction."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hfpersist.builder import ArchiveBuilder, member_name
from hfpersist.collector import collect_paths
from hfpersist.errors import ArchiveNotFoundError, DownloadError, ListError, RestoreError
from hfpersist.restore import RestoreResolver
from hfpersist.store import LocalArchiveStore


@pytest.fixture
def builder(tmp_path: Path, clock) -> ArchiveBuilder:
    return ArchiveBuilder("A", "tar.gz", tmp_path / "work", clock=clock)


@pytest.fixture
def resolver(local_store: LocalArchiveStore, builder: ArchiveBuilder, tmp_path: Path) -> RestoreResolver:
    return RestoreResolver(local_store, builder, "A", "tar.gz", tmp_path / "work")


def _publish(builder: ArchiveBuilder, store: LocalArchiveStore, source: Path, excludes=()) -> str:
    archive = builder.build(collect_paths(str(source)), list(excludes))
    store.upload(archive.local_path, archive.name)
    archive.local_path.unlink()
    return archive.name


class TestResolve:
    """Mapping targets to names."""

    def test_latest_is_greatest_name(self, resolver: RestoreResolver, store_root: Path) -> None:
        store_root.mkdir()
        for name in ("A_20240101_020000.tar.gz", "A_20240103_000000.tar.gz", "A_20231231_235959.tar.gz"):
            (store_root / name).write_text("x")
        assert resolver.resolve("latest") == "A_20240103_000000.tar.gz"

    def test_latest_on_empty_namespace(self, resolver: RestoreResolver) -> None:
        with pytest.raises(ArchiveNotFoundError):
            resolver.resolve()

    def test_explicit_name_verbatim(self, resolver: RestoreResolver) -> None:
        assert resolver.resolve("A_anything.tar.gz") == "A_anything.tar.gz"

    def test_list_error_is_not_not_found(self, builder: ArchiveBuilder, tmp_path: Path) -> None:
        store = MagicMock()
        store.list.side_effect = ListError("down", namespace="me/ds")
        resolver = RestoreResolver(store, builder, "A", "tar.gz", tmp_path)
        with pytest.raises(ListError):
            resolver.resolve("latest")

    def test_available_newest_first(self, resolver: RestoreResolver, store_root: Path) -> None:
        store_root.mkdir()
        for name in ("A_1.tar.gz", "A_3.tar.gz", "A_2.tar.gz"):
            (store_root / name).write_text("x")
        assert resolver.available() == ["A_3.tar.gz", "A_2.tar.gz", "A_1.tar.gz"]


class TestRestore:
    """Download and unpack."""

    def test_restore_latest_round_trip(self, resolver, builder, local_store, source_dir: Path,
                                       tmp_path: Path) -> None:
        _publish(builder, local_store, source_dir, ["*.log"])
        (source_dir / "a.txt").write_text("changed after first archive\n")
        newest = _publish(builder, local_store, source_dir, ["*.log"])

        dest = tmp_path / "restored"
        assert resolver.restore_target("latest", dest) == newest

        restored = dest / member_name(source_dir)
        assert (restored / "a.txt").read_text() == "changed after first archive\n"
        assert (restored / "nested" / "d.bin").read_bytes() == bytes(range(256))
        assert not (restored / "b.log").exists()

    def test_scratch_removed_after_success(self, resolver, builder, local_store, source_dir: Path,
                                           tmp_path: Path) -> None:
        name = _publish(builder, local_store, source_dir)
        resolver.restore(name, tmp_path / "restored")
        assert list((tmp_path / "work").glob("hfpersist-restore-*")) == []

    def test_corrupt_archive_raises_restore_error(self, resolver, store_root: Path, tmp_path: Path) -> None:
        store_root.mkdir()
        (store_root / "A_20240101_000000.tar.gz").write_bytes(b"garbage")

        with pytest.raises(RestoreError):
            resolver.restore("A_20240101_000000.tar.gz", tmp_path / "restored")
        assert list((tmp_path / "work").glob("hfpersist-restore-*")) == []

    def test_missing_archive_raises_download_error(self, resolver, tmp_path: Path) -> None:
        with pytest.raises(DownloadError):
            resolver.restore("A_20990101_000000.tar.gz", tmp_path / "restored")
