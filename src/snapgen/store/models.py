"""Manifest model for completed snapshots."""

from __future__ import annotations

import json
from typing import List

from pydantic import BaseModel, Field

SNAPSHOT_FORMAT_VERSION = "1.0.0"

MANIFEST_FIELDS = (
    "snapshot_name",
    "version",
    "root_path",
    "scan_start",
    "scan_end",
    "scan_duration",
    "total_entries",
    "total_files",
    "total_dirs",
    "total_links",
    "total_size",
    "total_errors",
    "os_platform",
    "time_zone",
    "snapshot_hash",
    "exclude_paths",
)


class SnapshotManifest(BaseModel):
    """Summary row written once a snapshot has been fully committed.

    Attributes:
        snapshot_name: Optional label supplied by the operator.
        version: Snapshot format version.
        root_path: Absolute path of the scanned root.
        scan_start: Start time in milliseconds since epoch.
        scan_end: End time in milliseconds since epoch.
        scan_duration: ``scan_end - scan_start`` in milliseconds.
        total_entries: Files, directories and links captured.
        total_files: Regular files captured.
        total_dirs: Directories captured.
        total_links: Symbolic links captured.
        total_size: Sum of file sizes in bytes.
        total_errors: Entries and directories that could not be read.
        os_platform: Host platform identifier (``sys.platform``).
        time_zone: Host time zone name.
        snapshot_hash: Content signature over entries, users and groups.
        exclude_paths: Exclusion patterns applied during the scan.
    """

    snapshot_name: str = ""
    version: str = SNAPSHOT_FORMAT_VERSION
    root_path: str
    scan_start: int
    scan_end: int
    scan_duration: int
    total_entries: int
    total_files: int
    total_dirs: int
    total_links: int
    total_size: int
    total_errors: int
    os_platform: str
    time_zone: str
    snapshot_hash: str
    exclude_paths: List[str] = Field(default_factory=list)

    def as_row(self) -> tuple[object, ...]:
        """Return the manifest in `MANIFEST_FIELDS` order, patterns JSON-encoded."""
        values = self.model_dump(mode="python")
        values["exclude_paths"] = json.dumps(self.exclude_paths)
        return tuple(values[name] for name in MANIFEST_FIELDS)

    @classmethod
    def from_row(cls, row: tuple[object, ...]) -> "SnapshotManifest":
        values = dict(zip(MANIFEST_FIELDS, row))
        raw_patterns = values.get("exclude_paths")
        values["exclude_paths"] = json.loads(raw_patterns) if raw_patterns else []
        if values.get("snapshot_name") is None:
            values["snapshot_name"] = ""
        return cls.model_validate(values)


__all__ = ["MANIFEST_FIELDS", "SNAPSHOT_FORMAT_VERSION", "SnapshotManifest"]
