"""Console progress and summary output for snapshot runs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.status import Status

from snapgen.scan.models import ScanStatistics
from snapgen.store.models import SnapshotManifest


class ScanReporter:
    """Render scan progress, per-entry errors and the final summary.

    Quiet mode suppresses everything except fatal failures. Progress is only
    drawn on interactive terminals.
    """

    def __init__(self, console: Console | None = None, *, quiet: bool = False) -> None:
        self.console = console or Console()
        self.quiet = quiet
        self._status: Status | None = None

    def _emit(self, message: Any) -> None:
        if self.quiet:
            return
        if self._status is not None:
            self._status.console.print(message)
        else:
            self.console.print(message)

    def started(self, root: Path, db_path: Path) -> None:
        """Announce a run and start the live progress line."""
        self._emit(
            f"[*] Initializing snapshot of {escape(str(root))} -> {escape(db_path.as_posix())}"
        )
        if not self.quiet and self.console.is_terminal:
            self._status = self.console.status("[cyan]\\[Scanning][/cyan] starting...")
            self._status.start()

    def progress(self, stats: ScanStatistics) -> None:
        """Refresh the progress line after a committed batch."""
        if self._status is None:
            return
        self._status.update(
            f"[cyan]\\[Scanning][/cyan] Found: {stats.entries} | Errors: {stats.errors} "
            f"| Size: {stats.total_size_mb:.2f} MB"
        )

    def entry_error(self, path: Path, reason: str) -> None:
        """Report an entry or directory that was skipped."""
        self._emit(f"[red]\\[Error][/red] {escape(str(path))}: {escape(reason)}")

    def warning(self, message: str) -> None:
        self._emit(f"[yellow]\\[Warning][/yellow] {escape(message)}")

    def finished(
        self,
        manifest: SnapshotManifest,
        db_path: Path,
        *,
        signature_path: Path | None = None,
        checksum_path: Path | None = None,
        db_checksum: str | None = None,
    ) -> None:
        """Print the summary block for a completed snapshot."""
        self._stop()
        size_mb = manifest.total_size / 1024 / 1024
        lines = [
            "[green]Snapshot finished.[/green]",
            f"- Snapshot saved to: {escape(db_path.as_posix())}",
            f"- Snapshot Content Hash (SHA256): {manifest.snapshot_hash}",
            f"- Duration:  {manifest.scan_duration / 1000:.2f}s",
            f"- Entries:   {manifest.total_entries} (Files: {manifest.total_files}, "
            f"Dirs: {manifest.total_dirs}, Links: {manifest.total_links})",
            f"- Data Size: {size_mb:.2f} MB",
        ]
        if manifest.total_errors:
            lines.append(
                f"[yellow]- Errors:    {manifest.total_errors} (check the messages above)[/yellow]"
            )
        if signature_path is not None:
            lines.append(f"- Signature file: {escape(signature_path.as_posix())}")
        if checksum_path is not None:
            lines.append(f"- File Checksum: {db_checksum}")
            lines.append(f"- Checksum file created: {escape(checksum_path.as_posix())}")
        for line in lines:
            self._emit(line)

    def failed(self, error: BaseException) -> None:
        """Report a fatal failure; shown even in quiet mode."""
        self._stop()
        self.console.print(f"[red]\\[Critical Error] Snapshot failed: {escape(str(error))}[/red]")

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


__all__ = ["ScanReporter"]
