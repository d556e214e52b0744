"""Exclusion-aware directory traversal."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from .errors import ListingError
from .exclusions import ExclusionMatcher, relative_posix

LOGGER = logging.getLogger(__name__)


class DirectoryWalker:
    """Lazily enumerate a directory tree in depth-first pre-order.

    Directories are yielded before their contents; files, symbolic links and
    other non-directories are yielded as leaves. Links are never followed, so
    link cycles cannot make the walk unbounded. A directory that cannot be
    listed is treated as empty and remembered in `listing_errors`.
    """

    def __init__(self, matcher: ExclusionMatcher | None = None) -> None:
        self.matcher = matcher or ExclusionMatcher()
        self._listing_errors: list[ListingError] = []

    @property
    def listing_errors(self) -> list[ListingError]:
        """Return listing failures not yet drained."""
        return list(self._listing_errors)

    def drain_errors(self) -> list[ListingError]:
        """Return and forget the listing failures seen so far."""
        drained, self._listing_errors = self._listing_errors, []
        return drained

    def walk(self, directory: Path, root: Path) -> Iterator[Path]:
        """Yield absolute paths under ``directory``, starting with ``directory`` itself.

        Traversal keeps one pending listing per open directory instead of
        recursing, so depth is bounded only by the filesystem.

        Args:
            directory: Directory to enumerate.
            root: Scan root that exclusion patterns are relative to.

        Yields:
            Path: Each surviving directory and leaf, as an absolute path.
        """
        directory = Path(os.path.abspath(directory))
        if self.matcher.excluded(relative_posix(directory, root), is_dir=True):
            return

        yield directory
        pending = [self._children(directory)]
        while pending:
            child = next(pending[-1], None)
            if child is None:
                pending.pop()
                continue
            child_path, is_dir = child
            if self.matcher.excluded(relative_posix(child_path, root), is_dir=is_dir):
                LOGGER.debug("Excluded %s", child_path)
                continue
            yield child_path
            if is_dir:
                pending.append(self._children(child_path))

    def _children(self, directory: Path) -> Iterator[tuple[Path, bool]]:
        # Listed on first use so a directory is yielded before it is opened.
        try:
            with os.scandir(directory) as iterator:
                children = list(iterator)
        except OSError as exc:
            LOGGER.warning("Cannot list %s: %s", directory, exc)
            self._listing_errors.append(ListingError(directory, exc))
            return

        for child in children:
            try:
                is_dir = child.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            yield directory / child.name, is_dir


__all__ = ["DirectoryWalker"]
