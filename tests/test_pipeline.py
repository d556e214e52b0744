"""Snapshot pipeline tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

import pytest

from snapgen.identity import IdentityDirectory, UserRecord
from snapgen.scan import (
    ContentHasher,
    DirEntry,
    DirectoryWalker,
    EntryCapture,
    EntryRecord,
    ExclusionMatcher,
    FileEntry,
    LinkEntry,
    SnapshotError,
    SnapshotPipeline,
)
from snapgen.scan.pipeline import local_time_zone
from snapgen.signature import SignatureComputer, SignatureError
from snapgen.store import SnapshotStore, StoreError

EXCLUDES = ["**/node_modules/**"]


def _build_tree(root: Path) -> Path:
    root.mkdir()
    (root / "sub" / "empty").mkdir(parents=True)
    (root / "node_modules").mkdir()
    (root / "a.txt").write_text("hi", encoding="utf-8")
    (root / "sub" / "b.txt").write_text("bye", encoding="utf-8")
    (root / "node_modules" / "x.js").write_text("x", encoding="utf-8")
    return root


def _pipeline(
    store: SnapshotStore,
    *,
    patterns: Sequence[str] = EXCLUDES,
    batch_size: int = 200,
    capture: EntryCapture | None = None,
    identities: IdentityDirectory | None = None,
    clock_values: Sequence[int] | None = None,
) -> SnapshotPipeline:
    kwargs = {}
    if clock_values is not None:
        kwargs["clock"] = iter(clock_values).__next__
    return SnapshotPipeline(
        DirectoryWalker(ExclusionMatcher(patterns)),
        capture or EntryCapture(),
        store,
        identities if identities is not None else IdentityDirectory(),
        batch_size=batch_size,
        **kwargs,
    )


def _snapshot(root: Path, db_path: Path, **options: object):
    with SnapshotStore(db_path) as store:
        pipeline = _pipeline(store, **options)  # type: ignore[arg-type]
        manifest = pipeline.run(root, exclude_paths=EXCLUDES)
        entries = list(store.iter_entries())
        users = store.load_users()
        groups = store.load_groups()
    return manifest, entries, users, groups


def test_snapshot_of_small_tree(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")

    manifest, entries, _, _ = _snapshot(root, tmp_path / "one.db", clock_values=[1000, 1750])

    assert [entry.path for entry in entries] == ["a.txt", "sub", "sub/b.txt", "sub/empty"]
    assert manifest.total_entries == 4
    assert manifest.total_files == 2
    assert manifest.total_dirs == 2
    assert manifest.total_links == 0
    assert manifest.total_size == 5
    assert manifest.total_errors == 0
    assert manifest.root_path == str(root.resolve())
    assert manifest.exclude_paths == EXCLUDES
    assert (manifest.scan_start, manifest.scan_end, manifest.scan_duration) == (1000, 1750, 750)
    assert manifest.total_entries == (
        manifest.total_files + manifest.total_dirs + manifest.total_links
    )
    assert manifest.total_size == sum(e.size for e in entries if isinstance(e, FileEntry))


def test_unchanged_tree_yields_identical_signature(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")

    first, *_ = _snapshot(root, tmp_path / "one.db")
    second, *_ = _snapshot(root, tmp_path / "two.db")

    assert first.snapshot_hash == second.snapshot_hash
    assert len(first.snapshot_hash) == 64


def test_batch_size_does_not_change_signature(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")

    small, *_ = _snapshot(root, tmp_path / "one.db", batch_size=1)
    large, *_ = _snapshot(root, tmp_path / "two.db", batch_size=500)

    assert small.snapshot_hash == large.snapshot_hash


def test_entry_type_invariants(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")
    try:
        (root / "link").symlink_to("a.txt")
    except (OSError, NotImplementedError):
        pytest.skip("cannot create symlinks here")

    manifest, entries, _, _ = _snapshot(root, tmp_path / "snap.db")

    assert manifest.total_links == 1
    for entry in entries:
        if isinstance(entry, FileEntry):
            assert len(entry.hash) == 64
        elif isinstance(entry, LinkEntry):
            assert entry.target == "a.txt"
        else:
            assert isinstance(entry, DirEntry)


def test_only_referenced_identities_are_persisted(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")
    info = os.lstat(root / "a.txt")
    identities = IdentityDirectory(
        [
            UserRecord(uid=info.st_uid, username="owner", gid=info.st_gid),
            UserRecord(uid=info.st_uid + 1, username="bystander"),
        ]
    )

    _, _, users, groups = _snapshot(root, tmp_path / "snap.db", identities=identities)

    assert [user.username for user in users] == ["owner"]
    assert [group.groupname for group in groups] == [f"gid:{info.st_gid}"]


def test_unlistable_directory_counts_as_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _build_tree(tmp_path / "root")
    locked = (root / "sub").resolve()
    real_scandir = os.scandir

    def _scandir(path: os.PathLike[str] | str = ".") -> object:
        if Path(path) == locked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", _scandir)

    manifest, entries, _, _ = _snapshot(root, tmp_path / "snap.db")

    assert manifest.total_errors == 1
    assert [entry.path for entry in entries] == ["a.txt", "sub"]


@pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0, reason="requires an unprivileged POSIX user"
)
def test_permission_denied_directory_counts_as_error(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")
    (root / "sub").chmod(0)
    try:
        manifest, _, _, _ = _snapshot(root, tmp_path / "snap.db")
    finally:
        (root / "sub").chmod(0o755)

    assert manifest.total_errors >= 1


def test_unreadable_file_is_skipped_and_counted(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")

    class _SkipA(ContentHasher):
        def compute(self, path: Path) -> str | None:
            if Path(path).name == "a.txt":
                return None
            return super().compute(path)

    manifest, entries, _, _ = _snapshot(root, tmp_path / "snap.db", capture=EntryCapture(_SkipA()))

    assert manifest.total_errors == 1
    assert manifest.total_files == 1
    assert "a.txt" not in [entry.path for entry in entries]


def test_excluded_root_produces_empty_snapshot(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")

    manifest, entries, users, groups = _snapshot(root, tmp_path / "snap.db", patterns=["."])

    assert manifest.total_entries == 0
    assert entries == []
    assert users == []
    assert groups == []


class _FailingStore(SnapshotStore):
    def __init__(self, db_path: Path, fail_on_call: int) -> None:
        super().__init__(db_path)
        self.fail_on_call = fail_on_call
        self.calls = 0

    def write_entries(self, records: Sequence[EntryRecord]) -> None:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise StoreError("disk full")
        super().write_entries(records)


def test_store_failure_aborts_without_manifest(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")
    db_path = tmp_path / "snap.db"

    store = _FailingStore(db_path, fail_on_call=2).open()
    try:
        with pytest.raises(SnapshotError, match="disk full"):
            _pipeline(store, batch_size=1).run(root)
    finally:
        store.close()

    with SnapshotStore(db_path).open(readonly=True) as reader:
        assert reader.count("entries") == 1
        assert reader.load_manifest() is None


def test_non_positive_batch_size_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        _pipeline(SnapshotStore(tmp_path / "snap.db"), batch_size=0)


class _BrokenSigner(SignatureComputer):
    def compute(self, store: SnapshotStore) -> str:
        raise SignatureError("cannot encode row")


def test_signature_failure_aborts_without_manifest(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")
    db_path = tmp_path / "snap.db"

    with SnapshotStore(db_path) as store:
        pipeline = SnapshotPipeline(
            DirectoryWalker(ExclusionMatcher(EXCLUDES)),
            EntryCapture(),
            store,
            IdentityDirectory(),
            signer=_BrokenSigner(),
        )
        with pytest.raises(SnapshotError, match="cannot encode row"):
            pipeline.run(root)

    with SnapshotStore(db_path).open(readonly=True) as reader:
        assert reader.count("entries") == 4
        assert reader.load_manifest() is None


def test_patterns_without_globstar_only_match_at_the_root(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "root")
    (root / "top.tmp").write_text("t", encoding="utf-8")
    (root / "sub" / "deep.tmp").write_text("d", encoding="utf-8")
    (root / "sub" / "a.txt").write_text("a", encoding="utf-8")

    _, entries, _, _ = _snapshot(root, tmp_path / "snap.db", patterns=["*.tmp", "a.txt"])

    paths = [entry.path for entry in entries]
    assert "top.tmp" not in paths
    assert "a.txt" not in paths
    assert {"sub/deep.tmp", "sub/a.txt"} <= set(paths)


def test_local_time_zone_prefers_zone_names(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("TZ", raising=False)
    zone_file = tmp_path / "usr" / "share" / "zoneinfo" / "Europe" / "Berlin"
    zone_file.parent.mkdir(parents=True)
    zone_file.write_bytes(b"TZif")
    localtime = tmp_path / "localtime"
    try:
        localtime.symlink_to(zone_file)
    except (OSError, NotImplementedError):
        pytest.skip("cannot create symlinks here")
    timezone_file = tmp_path / "timezone"
    timezone_file.write_text("America/Chicago\n", encoding="utf-8")

    assert local_time_zone(localtime, timezone_file) == "Europe/Berlin"
    assert local_time_zone(tmp_path / "missing", timezone_file) == "America/Chicago"

    monkeypatch.setenv("TZ", ":Asia/Tokyo")
    assert local_time_zone(localtime, timezone_file) == "Asia/Tokyo"
