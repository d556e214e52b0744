"""SQLite persistence for snapshots."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from snapgen.identity.models import GROUP_FIELDS, USER_FIELDS, GroupRecord, UserRecord
from snapgen.scan.models import ENTRY_FIELDS, EntryRecord, entry_from_row

from .errors import IncompleteSnapshotError, MissingSnapshotError, StoreError
from .models import MANIFEST_FIELDS, SNAPSHOT_FORMAT_VERSION, SnapshotManifest

LOGGER = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshot_info (
    snapshot_name TEXT,
    version TEXT,
    root_path TEXT,
    scan_start INTEGER,
    scan_end INTEGER,
    scan_duration INTEGER,
    total_entries INTEGER,
    total_files INTEGER,
    total_dirs INTEGER,
    total_links INTEGER,
    total_size INTEGER,
    total_errors INTEGER,
    os_platform TEXT,
    time_zone TEXT,
    snapshot_hash TEXT,
    exclude_paths TEXT
);

CREATE TABLE IF NOT EXISTS entries (
    path TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    size INTEGER,
    mtime INTEGER,
    ctime INTEGER,
    btime INTEGER,
    mode INTEGER,
    uid INTEGER,
    gid INTEGER,
    ino INTEGER,
    nlink INTEGER,
    hash TEXT,
    target TEXT
) WITHOUT ROWID;

CREATE TABLE IF NOT EXISTS users (
    uid INTEGER PRIMARY KEY,
    username TEXT,
    gid INTEGER,
    gecos TEXT,
    homedir TEXT,
    shell TEXT
) WITHOUT ROWID;

CREATE TABLE IF NOT EXISTS groups (
    gid INTEGER PRIMARY KEY,
    groupname TEXT,
    members TEXT
) WITHOUT ROWID;
"""

# Readable relations, their columns and canonical ordering.
_TABLES = {
    "entries": (ENTRY_FIELDS, "path"),
    "users": (USER_FIELDS, "uid"),
    "groups": (GROUP_FIELDS, "gid"),
    "snapshot_info": (MANIFEST_FIELDS, None),
}


def _insert_sql(table: str) -> str:
    columns = _TABLES[table][0]
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


class SnapshotStore:
    """Own the SQLite database that receives one snapshot.

    Every write method commits a single transaction; a failed write is rolled
    back as a whole and surfaces as `StoreError`. A store opened for writing
    refuses databases that already hold entries or a manifest.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store for the database at ``db_path``.

        Args:
            db_path: Location of the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self, *, readonly: bool = False) -> "SnapshotStore":
        """Connect to the database, creating the schema for writable stores.

        Args:
            readonly: Open an existing database without modifying it.

        Returns:
            SnapshotStore: The store itself, for chaining.

        Raises:
            MissingSnapshotError: If ``readonly`` and the file does not exist.
            StoreError: If the database cannot be opened or is already populated.
        """
        if self._conn is not None:
            return self
        try:
            if readonly:
                if not self._db_path.is_file():
                    raise MissingSnapshotError(f"No snapshot database at {self._db_path}")
                uri = self._db_path.resolve().as_uri() + "?mode=ro"
                self._conn = sqlite3.connect(uri, uri=True)
            else:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(self._db_path))
                self._conn.execute("PRAGMA journal_mode = WAL")
                self._conn.execute("PRAGMA synchronous = NORMAL")
                self._conn.executescript(SCHEMA)
                self._ensure_empty()
        except sqlite3.Error as exc:
            self.close()
            raise StoreError(f"Cannot open snapshot database {self._db_path}: {exc}") from exc
        except StoreError:
            self.close()
            raise
        LOGGER.debug("Opened snapshot database %s (readonly=%s)", self._db_path, readonly)
        return self

    def close(self) -> None:
        """Close the connection; safe to call repeatedly."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        finally:
            self._conn = None

    def __enter__(self) -> "SnapshotStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Writes -----------------------------------------------------------

    def write_entries(self, records: Sequence[EntryRecord]) -> None:
        """Insert a batch of entry records in one transaction."""
        self._write_many("entries", [record.as_row() for record in records])

    def write_identities(
        self, users: Iterable[UserRecord], groups: Iterable[GroupRecord]
    ) -> None:
        """Insert the referenced user and group records in one transaction."""
        conn = self._connection()
        try:
            with conn:
                conn.executemany(_insert_sql("users"), [user.as_row() for user in users])
                conn.executemany(_insert_sql("groups"), [group.as_row() for group in groups])
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write identity tables: {exc}") from exc

    def write_manifest(self, manifest: SnapshotManifest) -> None:
        """Insert the manifest row that marks the snapshot complete."""
        if self.load_manifest() is not None:
            raise StoreError(f"{self._db_path} already holds a snapshot manifest")
        self._write_many("snapshot_info", [manifest.as_row()])

    # Reads ------------------------------------------------------------

    def iter_rows(self, table: str) -> Iterator[tuple[object, ...]]:
        """Yield rows of ``table`` in canonical column order and primary-key order.

        Entries are ordered by path under SQLite's BINARY collation, which
        compares the UTF-8 bytes; identities are ordered by numeric ID.
        """
        try:
            columns, order_by = _TABLES[table]
        except KeyError:
            raise StoreError(f"Unknown table {table!r}") from None
        sql = f"SELECT {', '.join(columns)} FROM {table}"
        if order_by is not None:
            sql += f" ORDER BY {order_by} COLLATE BINARY ASC"
        try:
            cursor = self._connection().execute(sql)
            for row in cursor:
                yield tuple(row)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read {table}: {exc}") from exc

    def iter_entries(self) -> Iterator[EntryRecord]:
        """Yield stored entries as typed records, ordered by path."""
        for row in self.iter_rows("entries"):
            yield entry_from_row(row)

    def load_users(self) -> list[UserRecord]:
        return [
            UserRecord.model_validate(dict(zip(USER_FIELDS, row)))
            for row in self.iter_rows("users")
        ]

    def load_groups(self) -> list[GroupRecord]:
        groups: list[GroupRecord] = []
        for gid, groupname, members in self.iter_rows("groups"):
            groups.append(
                GroupRecord(
                    gid=gid,
                    groupname=groupname,
                    members=[member for member in str(members or "").split(",") if member],
                )
            )
        return groups

    def count(self, table: str) -> int:
        if table not in _TABLES:
            raise StoreError(f"Unknown table {table!r}")
        try:
            (value,) = self._connection().execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to count {table}: {exc}") from exc
        return int(value)

    def load_manifest(self) -> SnapshotManifest | None:
        """Return the manifest, or None for an incomplete snapshot."""
        rows = list(self.iter_rows("snapshot_info"))
        if not rows:
            return None
        if len(rows) > 1:
            raise StoreError(f"{self._db_path} holds {len(rows)} manifest rows")
        return SnapshotManifest.from_row(rows[0])

    def require_manifest(self) -> SnapshotManifest:
        """Return the manifest or raise `IncompleteSnapshotError`."""
        manifest = self.load_manifest()
        if manifest is None:
            raise IncompleteSnapshotError(
                f"{self._db_path} has no manifest; the snapshot did not complete"
            )
        return manifest

    # Internal helpers -------------------------------------------------

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Snapshot store is not open")
        return self._conn

    def _write_many(self, table: str, rows: list[tuple[object, ...]]) -> None:
        conn = self._connection()
        try:
            with conn:
                conn.executemany(_insert_sql(table), rows)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write {len(rows)} row(s) to {table}: {exc}") from exc

    def _ensure_empty(self) -> None:
        for table in ("entries", "snapshot_info"):
            if self.count(table):
                raise StoreError(
                    f"{self._db_path} already contains a snapshot; choose a new output path"
                )


__all__ = [
    "SCHEMA",
    "SNAPSHOT_FORMAT_VERSION",
    "IncompleteSnapshotError",
    "MissingSnapshotError",
    "SnapshotManifest",
    "SnapshotStore",
    "StoreError",
]
