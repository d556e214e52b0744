"""Scan failures.

Two severities exist. Soft failures (`CaptureError`, `ListingError`) concern a
single entry or directory; the pipeline counts them and carries on. A
`SnapshotError` ends the run before the manifest is written.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class CaptureError(Exception):
    """Raised when metadata for one path cannot be captured."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass(frozen=True, slots=True)
class ListingError:
    """A directory whose contents could not be listed."""

    path: Path
    error: OSError

    @property
    def reason(self) -> str:
        return self.error.strerror or str(self.error)


class SnapshotError(Exception):
    """Raised when a snapshot run cannot complete."""


__all__ = ["CaptureError", "ListingError", "SnapshotError"]
