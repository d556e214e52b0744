"""Snapshot store tests."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from snapgen.identity import GroupRecord, UserRecord
from snapgen.scan.models import DirEntry, FileEntry, LinkEntry
from snapgen.store import (
    IncompleteSnapshotError,
    MissingSnapshotError,
    SnapshotManifest,
    SnapshotStore,
    StoreError,
)

_COMMON = {"mtime": 1, "ctime": 2, "btime": 0, "mode": 0o644, "uid": 1000, "gid": 1000, "nlink": 1}


def _file(path: str, ino: int = 1, content_hash: str = "ab" * 32) -> FileEntry:
    return FileEntry(path=path, ino=ino, size=3, hash=content_hash, **_COMMON)


def _manifest(**overrides: object) -> SnapshotManifest:
    values: dict[str, object] = {
        "snapshot_name": "nightly",
        "root_path": "/data",
        "scan_start": 1000,
        "scan_end": 1500,
        "scan_duration": 500,
        "total_entries": 1,
        "total_files": 1,
        "total_dirs": 0,
        "total_links": 0,
        "total_size": 3,
        "total_errors": 0,
        "os_platform": "linux",
        "time_zone": "UTC",
        "snapshot_hash": "00" * 32,
        "exclude_paths": ["**/node_modules/**", "*.tmp"],
    }
    values.update(overrides)
    return SnapshotManifest.model_validate(values)


def test_open_creates_schema_in_wal_mode(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "snap.db"

    with SnapshotStore(db_path) as store:
        assert store.is_open
        assert store.count("entries") == 0
        (mode,) = store._connection().execute("PRAGMA journal_mode").fetchone()
        assert mode == "wal"

    assert db_path.exists()
    assert not store.is_open


def test_entries_round_trip_in_byte_order(tmp_path: Path) -> None:
    records = [
        _file("b.txt", ino=1),
        DirEntry(path="a", ino=2, **_COMMON),
        LinkEntry(path="a/link", ino=3, target="../b.txt", **_COMMON),
        _file("B.txt", ino=4),
        _file("été.txt", ino=5),
    ]
    with SnapshotStore(tmp_path / "snap.db") as store:
        store.write_entries(records[:2])
        store.write_entries(records[2:])

        stored = list(store.iter_entries())

    assert [record.path for record in stored] == ["B.txt", "a", "a/link", "b.txt", "été.txt"]
    assert stored[2] == records[2]
    assert stored[0] == records[3]


def test_failed_batch_is_rolled_back(tmp_path: Path) -> None:
    with SnapshotStore(tmp_path / "snap.db") as store:
        store.write_entries([_file("keep.txt")])

        with pytest.raises(StoreError):
            store.write_entries([_file("new.txt"), _file("keep.txt")])

        assert [record.path for record in store.iter_entries()] == ["keep.txt"]


def test_identities_round_trip(tmp_path: Path) -> None:
    users = [UserRecord(uid=0, username="root", gid=0, homedir="/root", shell="/bin/sh")]
    groups = [GroupRecord(gid=50, groupname="staff", members=["alice", "bob"])]

    with SnapshotStore(tmp_path / "snap.db") as store:
        store.write_identities(users, groups)

        assert store.load_users() == users
        assert store.load_groups() == groups


def test_manifest_round_trip_and_single_row(tmp_path: Path) -> None:
    manifest = _manifest()

    with SnapshotStore(tmp_path / "snap.db") as store:
        assert store.load_manifest() is None
        store.write_manifest(manifest)

        assert store.load_manifest() == manifest
        with pytest.raises(StoreError):
            store.write_manifest(manifest)


def test_populated_database_is_refused(tmp_path: Path) -> None:
    db_path = tmp_path / "snap.db"
    with SnapshotStore(db_path) as store:
        store.write_entries([_file("a.txt")])

    store = SnapshotStore(db_path)
    with pytest.raises(StoreError, match="already contains a snapshot"):
        store.open()
    assert not store.is_open


def test_readonly_open_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(MissingSnapshotError):
        SnapshotStore(tmp_path / "absent.db").open(readonly=True)

    assert not (tmp_path / "absent.db").exists()


def test_readonly_store_rejects_writes(tmp_path: Path) -> None:
    db_path = tmp_path / "snap.db"
    with SnapshotStore(db_path) as store:
        store.write_entries([_file("a.txt")])

    with SnapshotStore(db_path).open(readonly=True) as store:
        assert store.count("entries") == 1
        with pytest.raises(StoreError):
            store.write_entries([_file("b.txt", ino=2)])


def test_require_manifest_flags_incomplete_snapshot(tmp_path: Path) -> None:
    db_path = tmp_path / "snap.db"
    with SnapshotStore(db_path) as store:
        store.write_entries([_file("a.txt")])

    with SnapshotStore(db_path).open(readonly=True) as store:
        with pytest.raises(IncompleteSnapshotError):
            store.require_manifest()


def test_closed_store_raises_store_error(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path / "snap.db")

    with pytest.raises(StoreError, match="not open"):
        store.write_entries([_file("a.txt")])


def test_unknown_table_is_rejected(tmp_path: Path) -> None:
    with SnapshotStore(tmp_path / "snap.db") as store:
        with pytest.raises(StoreError):
            list(store.iter_rows("sqlite_master"))


def test_manifest_stores_patterns_as_json(tmp_path: Path) -> None:
    db_path = tmp_path / "snap.db"
    with SnapshotStore(db_path) as store:
        store.write_manifest(_manifest())

    with sqlite3.connect(db_path) as conn:
        (raw,) = conn.execute("SELECT exclude_paths FROM snapshot_info").fetchone()
    assert raw == '["**/node_modules/**", "*.tmp"]'
