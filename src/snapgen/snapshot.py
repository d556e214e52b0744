"""High-level snapshot workflow used by the command line."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from snapgen.artifacts import write_checksum_file, write_signature_file
from snapgen.config.models import SnapgenConfig
from snapgen.identity import IdentityDirectory
from snapgen.reporting import ScanReporter
from snapgen.scan import (
    ContentHasher,
    DirectoryWalker,
    EntryCapture,
    ExclusionMatcher,
    SnapshotError,
    SnapshotPipeline,
)
from snapgen.scan.exclusions import literal_pattern, relative_posix
from snapgen.store import SnapshotStore, StoreError
from snapgen.store.models import SnapshotManifest

LOGGER = logging.getLogger(__name__)

# SQLite side files that appear next to a database in WAL mode.
DB_SIDE_SUFFIXES = ("", "-wal", "-shm", "-journal")


@dataclass
class SnapshotResult:
    """Outcome of a completed snapshot run."""

    manifest: SnapshotManifest
    db_path: Path
    signature_path: Optional[Path] = None
    checksum_path: Optional[Path] = None
    db_checksum: Optional[str] = None


def default_output_path(now_ms: int | None = None) -> Path:
    """Return ``./snapshot-<epoch-ms>.db`` for runs without an explicit output."""
    stamp = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    return Path.cwd() / f"snapshot-{stamp}.db"


def database_exclusions(db_path: Path, root: Path) -> list[str]:
    """Return anchored patterns hiding the database files when they live under ``root``."""
    try:
        db_path.relative_to(root)
    except ValueError:
        return []
    relative = relative_posix(db_path, root)
    return [literal_pattern(relative + suffix) for suffix in DB_SIDE_SUFFIXES]


def create_snapshot(
    config: SnapgenConfig,
    *,
    identities: IdentityDirectory | None = None,
    reporter: ScanReporter | None = None,
) -> SnapshotResult:
    """Snapshot the configured directory into a new SQLite database.

    Args:
        config: Resolved configuration.
        identities: User and group lookup; read from the system when omitted.
        reporter: Console reporter receiving progress and the summary.

    Returns:
        SnapshotResult: Manifest and the paths of every file written.

    Raises:
        SnapshotError: If the root is not a directory, the database cannot be
            opened or the run aborts before its manifest is written.
    """
    scan = config.scan
    root = Path(scan.path).expanduser().resolve()
    if not root.is_dir():
        raise SnapshotError(f"Scan root {root} is not a directory")

    db_path = Path(scan.out).expanduser() if scan.out else default_output_path()
    db_path = db_path.resolve()

    matcher = ExclusionMatcher([*scan.exclude, *database_exclusions(db_path, root)])
    chunk_size = scan.chunk_size_kb * 1024
    pipeline_identities = identities if identities is not None else IdentityDirectory.from_files()

    if reporter is not None:
        reporter.started(root, db_path)

    store = SnapshotStore(db_path)
    try:
        store.open()
    except StoreError as exc:
        raise SnapshotError(str(exc)) from exc

    try:
        pipeline = SnapshotPipeline(
            DirectoryWalker(matcher),
            EntryCapture(ContentHasher(chunk_size)),
            store,
            pipeline_identities,
            batch_size=scan.batch_size,
            reporter=reporter,
        )
        manifest = pipeline.run(root, snapshot_name=scan.name, exclude_paths=scan.exclude)
    finally:
        store.close()

    result = SnapshotResult(manifest=manifest, db_path=db_path)

    # The manifest is committed at this point; artifact failures only warn.
    if config.output.sign:
        try:
            result.signature_path = write_signature_file(db_path, manifest.snapshot_hash)
        except OSError as exc:
            LOGGER.warning("Could not write signature file for %s: %s", db_path, exc)
            if reporter is not None:
                reporter.warning(f"Could not write signature file: {exc}")
        else:
            LOGGER.info("Wrote signature file %s", result.signature_path)

    if config.output.checksum:
        try:
            result.checksum_path, result.db_checksum = write_checksum_file(db_path, chunk_size)
        except OSError as exc:
            LOGGER.warning("Could not write checksum for %s: %s", db_path, exc)
            if reporter is not None:
                reporter.warning(f"Could not generate file checksum: {exc}")

    if reporter is not None:
        reporter.finished(
            manifest,
            db_path,
            signature_path=result.signature_path,
            checksum_path=result.checksum_path,
            db_checksum=result.db_checksum,
        )
    return result


__all__ = [
    "DB_SIDE_SUFFIXES",
    "SnapshotResult",
    "create_snapshot",
    "database_exclusions",
    "default_output_path",
]
