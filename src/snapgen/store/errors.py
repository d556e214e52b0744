"""Snapshot store errors."""


class StoreError(Exception):
    """Base exception for snapshot database operations."""


class MissingSnapshotError(StoreError):
    """Raised when a snapshot database does not exist."""


class IncompleteSnapshotError(StoreError):
    """Raised when a snapshot database has no manifest row."""
