"""Exclusion patterns for scan roots."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from pathspec import PathSpec
from pathspec.patterns import GitWildMatchPattern

ROOT_RELATIVE = "."
_SPECIAL = set("\\*?[")


def relative_posix(path: Path | str, root: Path | str) -> str:
    """Return ``path`` relative to ``root`` with forward slashes (``.`` for the root)."""
    relative = os.path.relpath(path, root)
    if relative == os.curdir:
        return ROOT_RELATIVE
    return relative.replace("\\", "/")


def literal_pattern(relative_path: str) -> str:
    """Return an anchored pattern that matches exactly ``relative_path``."""
    escaped = "".join(f"\\{char}" if char in _SPECIAL else char for char in relative_path)
    return "/" + escaped


def _normalize_pattern(pattern: str) -> str:
    pattern = pattern.strip()
    if os.sep == "\\":
        pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


def _compiled_lines(pattern: str) -> list[str]:
    """Return wildmatch lines matching ``pattern`` against the whole relative path.

    Unanchored gitignore lines match a basename at any depth, so every pattern
    not starting with ``**`` is anchored with ``/``. That also keeps a leading
    ``#`` or ``!`` literal. A trailing ``/**`` additionally matches the path it
    follows, so ``**/X/**`` covers ``X`` whatever its type.
    """
    if not pattern.startswith(("/", "**")):
        pattern = "/" + pattern
    lines = [pattern.casefold()]
    base = pattern[:-3]
    if pattern.endswith("/**") and base.strip("/"):
        lines.append(base.casefold())
    return lines


class ExclusionMatcher:
    """Compiled, case-insensitive exclusion patterns.

    Patterns are shell globs over the whole root-relative path, evaluated with
    wildmatch rules: ``*`` stays within one segment, ``**`` spans directories,
    dot files are matched like any other name and there is no brace expansion.
    Candidates use ``/`` separators; directories are also tried with a trailing
    slash so ``Cache/`` only excludes directories. The root (``.``) is only
    excluded by the literal pattern ``.``.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns = tuple(p for p in (_normalize_pattern(raw) for raw in patterns) if p)
        self._excludes_root = ROOT_RELATIVE in self._patterns
        lines = [
            line
            for pattern in self._patterns
            if pattern != ROOT_RELATIVE
            for line in _compiled_lines(pattern)
        ]
        self._spec: PathSpec | None = (
            PathSpec.from_lines(GitWildMatchPattern, lines) if lines else None
        )

    @property
    def patterns(self) -> tuple[str, ...]:
        """Return the normalized patterns in their original order."""
        return self._patterns

    def __len__(self) -> int:
        return len(self._patterns)

    def excluded(self, relative_path: str, *, is_dir: bool = False) -> bool:
        """Return True when the root-relative path matches an exclusion pattern."""
        candidate = relative_path.replace(os.sep, "/").casefold()
        if candidate in ("", ROOT_RELATIVE):
            return self._excludes_root
        if self._spec is None:
            return False
        if self._spec.match_file(candidate):
            return True
        return is_dir and self._spec.match_file(candidate.rstrip("/") + "/")

    def excluded_path(self, path: Path | str, root: Path | str, *, is_dir: bool = False) -> bool:
        """Normalize ``path`` against ``root`` and test it."""
        return self.excluded(relative_posix(path, root), is_dir=is_dir)


__all__ = ["ExclusionMatcher", "ROOT_RELATIVE", "literal_pattern", "relative_posix"]
