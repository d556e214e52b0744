"""Traversal and capture pipeline for filesystem snapshots."""

from .capture import EntryCapture
from .discovery import DirectoryWalker
from .errors import CaptureError, ListingError, SnapshotError
from .exclusions import ExclusionMatcher, relative_posix
from .hashing import ContentHasher, file_digest
from .models import DirEntry, EntryRecord, FileEntry, LinkEntry, ScanStatistics
from .pipeline import DEFAULT_BATCH_SIZE, SnapshotPipeline

__all__ = [
    "CaptureError",
    "ContentHasher",
    "DEFAULT_BATCH_SIZE",
    "DirEntry",
    "DirectoryWalker",
    "EntryCapture",
    "EntryRecord",
    "ExclusionMatcher",
    "FileEntry",
    "LinkEntry",
    "ListingError",
    "ScanStatistics",
    "SnapshotError",
    "SnapshotPipeline",
    "file_digest",
    "relative_posix",
]
