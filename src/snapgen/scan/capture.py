"""Per-entry metadata capture."""

from __future__ import annotations

import math
import os
import stat
from pathlib import Path
from typing import Any, Optional

from .errors import CaptureError
from .exclusions import relative_posix
from .hashing import ContentHasher
from .models import DirEntry, EntryRecord, FileEntry, LinkEntry

PERMISSION_MASK = 0o777


def _millis(ns: int) -> int:
    return ns // 1_000_000


def _birth_millis(info: os.stat_result) -> int:
    birth_ns = getattr(info, "st_birthtime_ns", None)
    if birth_ns is not None:
        return _millis(birth_ns)
    birth = getattr(info, "st_birthtime", None)
    if birth is None:
        return 0
    return math.floor(birth * 1000)


def _storable(text: str) -> str:
    # Undecodable file names carry surrogate escapes that SQLite cannot encode.
    return text.encode("utf-8", "surrogateescape").decode("utf-8", "backslashreplace")


class EntryCapture:
    """Turn a discovered path into a typed metadata record."""

    def __init__(self, hasher: ContentHasher | None = None) -> None:
        self.hasher = hasher or ContentHasher()

    def capture(self, path: Path, root: Path) -> Optional[EntryRecord]:
        """Return the record for ``path`` or None for unsupported entry types.

        The entry is examined with ``lstat`` so links are described, not
        followed. Devices, sockets and FIFOs yield None.

        Args:
            path: Absolute path of the entry.
            root: Scan root the stored path is made relative to.

        Returns:
            Optional[EntryRecord]: File, directory or link record.

        Raises:
            CaptureError: If the entry vanished or cannot be read.
        """
        try:
            info = os.lstat(path)
        except OSError as exc:
            raise CaptureError(path, exc.strerror or str(exc)) from exc

        common: dict[str, Any] = {
            "path": _storable(relative_posix(path, root)),
            "mtime": _millis(info.st_mtime_ns),
            "ctime": _millis(info.st_ctime_ns),
            "btime": _birth_millis(info),
            "mode": info.st_mode & PERMISSION_MASK,
            "uid": info.st_uid,
            "gid": info.st_gid,
            "ino": info.st_ino,
            "nlink": info.st_nlink,
        }

        if stat.S_ISDIR(info.st_mode):
            return DirEntry(**common)

        if stat.S_ISLNK(info.st_mode):
            try:
                target = os.readlink(path)
            except OSError as exc:
                raise CaptureError(path, exc.strerror or str(exc)) from exc
            return LinkEntry(**common, target=_storable(os.fsdecode(target)).replace("\\", "/"))

        if stat.S_ISREG(info.st_mode):
            digest = self.hasher.compute(path)
            if digest is None:
                raise CaptureError(path, "file content could not be read")
            return FileEntry(**common, size=info.st_size, hash=digest)

        return None


__all__ = ["EntryCapture", "PERMISSION_MASK"]
