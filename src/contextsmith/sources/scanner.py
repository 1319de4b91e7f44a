"""
contextsmith — repository file discovery

File: src/contextsmith/sources/scanner.py
Last updated: 2026-10-18

Purpose
- List the source files a search may look at, honoring ``.gitignore`` and configured excludes.

Functional requirements
- Inside a git work tree use ``git ls-files --cached --others --exclude-standard``; elsewhere
  walk the directory tree with ``os.walk`` in sorted order.
- Apply config ``ignore`` globs, CLI ``--exclude`` globs, ``--lang`` and ``--path`` filters.
- Flag generated files by config globs; callers may also check content markers.

Non-functional requirements
- Output is sorted by relative POSIX path and independent of filesystem enumeration order.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Final

from contextsmith.errors import NotFoundError
from contextsmith.sources.git import GitRepository
from contextsmith.utils.fs import local_path
from contextsmith.utils.languages import infer_language

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

PathLike = str | os.PathLike[str]

DEFAULT_MAX_FILE_BYTES: Final[int] = 1_000_000
_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")
_ALWAYS_SKIPPED_DIRECTORIES: Final[frozenset[str]] = frozenset({".git", ".hg", ".svn"})
_GENERATED_MARKERS: Final[tuple[str, ...]] = (
    "@generated",
    "do not edit",
    "auto-generated",
    "automatically generated",
)
_GENERATED_MARKER_LINES: Final[int] = 10


@dataclass(frozen=True, slots=True)
class ScanOptions:
    """Filters applied on top of ``.gitignore``."""

    ignore: tuple[str, ...] = ()
    generated: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    languages: Mapping[str, Sequence[str]] = field(default_factory=dict)
    lang: str | None = None
    path_glob: str | None = None
    include_generated: bool = False
    use_git: bool = True


@dataclass(frozen=True, slots=True)
class ScannedFile:
    path: str
    language: str
    is_generated: bool
    size: int


def scan(root: PathLike, options: ScanOptions | None = None) -> tuple[ScannedFile, ...]:
    """Return the filtered files below ``root`` sorted by path."""

    resolved = options if options is not None else ScanOptions()
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise NotFoundError(str(root), what="root directory")

    results: list[ScannedFile] = []
    for relative in _list_files(root_path, use_git=resolved.use_git):
        if matches_pattern_list(relative, resolved.exclude):
            continue
        if matches_pattern_list(relative, resolved.ignore):
            continue

        language = infer_language(relative, resolved.languages)
        if resolved.lang is not None and language.lower() != resolved.lang.strip().lower():
            continue
        if resolved.path_glob is not None and not _matches_path_filter(
            relative, resolved.path_glob
        ):
            continue

        generated = matches_pattern_list(relative, resolved.generated)
        if generated and not resolved.include_generated:
            continue

        file_path = local_path(root_path, relative)
        try:
            size = file_path.stat().st_size
        except OSError:
            continue
        results.append(
            ScannedFile(path=relative, language=language, is_generated=generated, size=size)
        )

    results.sort(key=lambda item: item.path)
    return tuple(results)


def matches_ignore_pattern(path: str, pattern: str) -> bool:
    """Match a repository-relative path against one ignore-style pattern.

    Globs match the whole path, the file name, or any directory segment. Plain patterns match a
    whole segment, or a leading directory prefix when they contain ``/``.
    """

    cleaned = pattern.strip().strip("/")
    if not cleaned:
        return False
    parts = PurePosixPath(path).parts

    if any(char in _GLOB_CHARS for char in cleaned):
        if fnmatchcase(path, cleaned):
            return True
        if "/" in cleaned:
            return any(
                fnmatchcase("/".join(parts[:index]), cleaned) for index in range(1, len(parts))
            )
        return any(fnmatchcase(part, cleaned) for part in parts)

    if "/" in cleaned:
        return path == cleaned or path.startswith(cleaned + "/")
    return cleaned in parts


def matches_pattern_list(path: str, patterns: Iterable[str]) -> bool:
    return any(matches_ignore_pattern(path, pattern) for pattern in patterns)


def has_generated_marker(text: str) -> bool:
    """True when the first lines of ``text`` carry a generated-code marker."""

    header = "\n".join(text.splitlines()[:_GENERATED_MARKER_LINES]).lower()
    return any(marker in header for marker in _GENERATED_MARKERS)


def _matches_path_filter(path: str, path_glob: str) -> bool:
    cleaned = path_glob.strip()
    if not cleaned:
        return True
    if any(char in _GLOB_CHARS for char in cleaned):
        return fnmatchcase(path, cleaned) or fnmatchcase(path, cleaned.rstrip("/") + "/*")
    prefix = cleaned.strip("/")
    return path == prefix or path.startswith(prefix + "/")


def _list_files(root: Path, *, use_git: bool) -> list[str]:
    if use_git:
        repository = GitRepository(root)
        if repository.is_repository():
            return [
                path
                for path in repository.list_files()
                if local_path(root, path).is_file()
            ]
    return _walk_files(root)


def _walk_files(root: Path) -> list[str]:
    files: list[str] = []
    for current_dir, dir_names, file_names in os.walk(root, topdown=True, followlinks=False):
        dir_names[:] = [
            name for name in sorted(dir_names) if name not in _ALWAYS_SKIPPED_DIRECTORIES
        ]
        current_path = Path(current_dir)
        for file_name in sorted(file_names):
            file_path = current_path / file_name
            if not file_path.is_file():
                continue
            files.append(file_path.relative_to(root).as_posix())
    return files


__all__ = [
    "DEFAULT_MAX_FILE_BYTES",
    "ScanOptions",
    "ScannedFile",
    "has_generated_marker",
    "matches_ignore_pattern",
    "matches_pattern_list",
    "scan",
]
