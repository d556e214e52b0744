"""Snapshot pipeline orchestration."""

from __future__ import annotations

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable

from snapgen.identity import IdentityDirectory
from snapgen.signature import SignatureComputer, SignatureError
from snapgen.store.errors import StoreError
from snapgen.store.models import SNAPSHOT_FORMAT_VERSION, SnapshotManifest

from .capture import EntryCapture
from .discovery import DirectoryWalker
from .errors import CaptureError, SnapshotError
from .models import EntryRecord, ScanStatistics

if TYPE_CHECKING:
    from snapgen.reporting import ScanReporter
    from snapgen.store import SnapshotStore

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 200
LOCALTIME_PATH = Path("/etc/localtime")
TIMEZONE_FILE = Path("/etc/timezone")
_ZONEINFO_MARKER = "zoneinfo/"


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


def local_time_zone(
    localtime: Path = LOCALTIME_PATH, timezone_file: Path = TIMEZONE_FILE
) -> str:
    """Return the host's IANA time zone name such as ``Europe/Berlin``.

    ``TZ`` wins when set. Otherwise the zone is read from the target of the
    ``/etc/localtime`` link, then from ``/etc/timezone``; the current
    abbreviation (``CEST``) is only used when neither names a zone.
    """
    configured = os.environ.get("TZ")
    if configured:
        return configured.lstrip(":")

    target = os.path.realpath(localtime)
    if _ZONEINFO_MARKER in target:
        return target.split(_ZONEINFO_MARKER, 1)[1]

    try:
        named = timezone_file.read_text(encoding="utf-8").strip()
    except OSError:
        named = ""
    if named:
        return named
    return datetime.now().astimezone().tzname() or "UTC"


class SnapshotPipeline:
    """Drive walker output into batched, transactional persistence.

    The pipeline owns the running statistics and the batch buffer for one run.
    Per-entry and per-directory failures are counted and reported; failures
    to persist or sign abort the run before the manifest is written, so an
    incomplete database is recognisable by its missing manifest row.
    """

    def __init__(
        self,
        walker: DirectoryWalker,
        capture: EntryCapture,
        store: "SnapshotStore",
        identities: IdentityDirectory,
        *,
        signer: SignatureComputer | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        reporter: "ScanReporter | None" = None,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.walker = walker
        self.capture = capture
        self.store = store
        self.identities = identities
        self.signer = signer or SignatureComputer()
        self.batch_size = batch_size
        self.reporter = reporter
        self.clock = clock
        self.stats = ScanStatistics()

    def run(
        self,
        root: Path,
        *,
        snapshot_name: str = "",
        exclude_paths: Iterable[str] = (),
    ) -> SnapshotManifest:
        """Snapshot the tree under ``root`` and return the committed manifest.

        Args:
            root: Directory to snapshot.
            snapshot_name: Label stored in the manifest.
            exclude_paths: Patterns recorded in the manifest.

        Returns:
            SnapshotManifest: The manifest row written to the store.

        Raises:
            SnapshotError: If a batch, the identity tables, the signature or the
                manifest cannot be persisted.
        """
        root = Path(root).expanduser().resolve()
        self.stats = ScanStatistics()
        stats = self.stats
        uids: set[int] = set()
        gids: set[int] = set()
        batch: list[EntryRecord] = []

        scan_start = self.clock()
        LOGGER.info("Starting snapshot of %s", root)
        try:
            for path in self.walker.walk(root, root):
                self._absorb_listing_errors()
                if path == root:
                    continue
                try:
                    record = self.capture.capture(path, root)
                except CaptureError as exc:
                    stats.errors += 1
                    LOGGER.warning("Skipping %s: %s", exc.path, exc.reason)
                    if self.reporter is not None:
                        self.reporter.entry_error(exc.path, exc.reason)
                    continue
                if record is None:
                    LOGGER.debug("Ignoring unsupported entry type at %s", path)
                    continue

                stats.record(record)
                uids.add(record.uid)
                gids.add(record.gid)
                batch.append(record)

                if len(batch) >= self.batch_size:
                    self._flush(batch)
                    batch = []

            self._absorb_listing_errors()
            if batch:
                self._flush(batch)

            users, groups = self.identities.resolve(uids, gids)
            self.store.write_identities(users, groups)
            signature = self.signer.compute(self.store)

            scan_end = self.clock()
            manifest = SnapshotManifest(
                snapshot_name=snapshot_name,
                version=SNAPSHOT_FORMAT_VERSION,
                root_path=str(root),
                scan_start=scan_start,
                scan_end=scan_end,
                scan_duration=scan_end - scan_start,
                total_entries=stats.entries,
                total_files=stats.files,
                total_dirs=stats.dirs,
                total_links=stats.links,
                total_size=stats.total_size,
                total_errors=stats.errors,
                os_platform=sys.platform,
                time_zone=local_time_zone(),
                snapshot_hash=signature,
                exclude_paths=list(exclude_paths),
            )
            self.store.write_manifest(manifest)
        except (StoreError, SignatureError) as exc:
            LOGGER.exception("Snapshot of %s aborted after %d entries", root, stats.entries)
            raise SnapshotError(f"Snapshot of {root} failed: {exc}") from exc

        LOGGER.info(
            "Snapshot of %s complete: %d entries, %d errors, signature %s",
            root,
            stats.entries,
            stats.errors,
            signature,
        )
        return manifest

    def _flush(self, batch: list[EntryRecord]) -> None:
        self.store.write_entries(batch)
        LOGGER.debug("Committed batch of %d entries (%d total)", len(batch), self.stats.entries)
        if self.reporter is not None:
            self.reporter.progress(self.stats)

    def _absorb_listing_errors(self) -> None:
        for failure in self.walker.drain_errors():
            self.stats.errors += 1
            if self.reporter is not None:
                self.reporter.entry_error(failure.path, failure.reason)


__all__ = ["DEFAULT_BATCH_SIZE", "SnapshotPipeline", "local_time_zone"]
