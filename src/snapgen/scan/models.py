"""Entry records and running statistics produced by a scan."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# Column order of the `entries` relation; also the order used when signing.
ENTRY_FIELDS = (
    "path",
    "type",
    "size",
    "mtime",
    "ctime",
    "btime",
    "mode",
    "uid",
    "gid",
    "ino",
    "nlink",
    "hash",
    "target",
)


class EntryBase(BaseModel):
    """Identity envelope shared by every captured entry.

    Attributes:
        path: Root-relative path using forward slashes; unique per snapshot.
        mtime: Content modification time in integer milliseconds since epoch.
        ctime: Status change time in integer milliseconds since epoch.
        btime: Birth time in milliseconds, ``0`` when the platform lacks it.
        mode: Permission bits masked to ``0o777``.
        uid: Numeric owner ID.
        gid: Numeric group ID.
        ino: Inode number.
        nlink: Hard link count.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    mtime: int
    ctime: int
    btime: int = 0
    mode: int
    uid: int
    gid: int
    ino: int
    nlink: int

    def as_row(self) -> tuple[object, ...]:
        """Return the record as a tuple in `ENTRY_FIELDS` order."""
        return tuple(getattr(self, name, None) for name in ENTRY_FIELDS)


class FileEntry(EntryBase):
    """Regular file with its size and content digest."""

    type: Literal["file"] = "file"
    size: int
    hash: str


class DirEntry(EntryBase):
    """Directory below the scan root."""

    type: Literal["dir"] = "dir"


class LinkEntry(EntryBase):
    """Symbolic link; the link itself is recorded, never its referent."""

    type: Literal["link"] = "link"
    target: str


EntryRecord = Annotated[Union[FileEntry, DirEntry, LinkEntry], Field(discriminator="type")]


@dataclass(slots=True)
class ScanStatistics:
    """Running counters maintained by the snapshot pipeline.

    Attributes:
        entries: Records captured (files, directories and links).
        files: Regular files captured.
        dirs: Directories captured, excluding the root.
        links: Symbolic links captured.
        total_size: Sum of file sizes in bytes.
        errors: Entries or directories that could not be read.
    """

    entries: int = 0
    files: int = 0
    dirs: int = 0
    links: int = 0
    total_size: int = 0
    errors: int = 0

    def record(self, entry: EntryRecord) -> None:
        """Count ``entry`` toward the per-type totals."""
        self.entries += 1
        if isinstance(entry, FileEntry):
            self.files += 1
            self.total_size += entry.size
        elif isinstance(entry, DirEntry):
            self.dirs += 1
        elif isinstance(entry, LinkEntry):
            self.links += 1

    @property
    def total_size_mb(self) -> float:
        return self.total_size / 1024 / 1024


def entry_from_row(row: tuple[object, ...] | list[object]) -> EntryRecord:
    """Rebuild a typed record from a row in `ENTRY_FIELDS` order."""
    data = {name: value for name, value in zip(ENTRY_FIELDS, row) if value is not None}
    kind = data.get("type")
    if kind == "file":
        return FileEntry.model_validate(data)
    if kind == "dir":
        return DirEntry.model_validate(data)
    if kind == "link":
        return LinkEntry.model_validate(data)
    raise ValueError(f"Unknown entry type {kind!r} for {data.get('path')!r}")


__all__ = [
    "ENTRY_FIELDS",
    "EntryBase",
    "FileEntry",
    "DirEntry",
    "LinkEntry",
    "EntryRecord",
    "ScanStatistics",
    "entry_from_row",
]
