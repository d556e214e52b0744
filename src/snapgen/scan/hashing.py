"""Streaming content digests."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024


def file_digest(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Return the SHA-256 hex digest of the file at ``path``.

    Content is read in ``chunk_size`` pieces so memory use stays flat for
    large files.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    sha256 = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


class ContentHasher:
    """Compute content digests, reporting unreadable files as ``None``."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size

    def compute(self, path: Path) -> Optional[str]:
        """Return a hex digest of the file contents, or None if it cannot be read."""
        try:
            return file_digest(path, self.chunk_size)
        except OSError as exc:
            LOGGER.debug("Cannot hash %s: %s", path, exc)
            return None


__all__ = ["ContentHasher", "DEFAULT_CHUNK_SIZE", "file_digest"]
