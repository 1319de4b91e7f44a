"""Per-file timestamps for the recency signal: last commit time, mtime, or nothing."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from contextsmith.errors import ValidationError
from contextsmith.sources.git import GitRepository
from contextsmith.utils.fs import local_path

if TYPE_CHECKING:
    from collections.abc import Iterable

PathLike = str | os.PathLike[str]


class RecencySource(StrEnum):
    COMMIT = "commit"
    MTIME = "mtime"
    NONE = "none"


def parse_recency_source(value: str | RecencySource) -> RecencySource:
    try:
        return RecencySource(str(value).strip().lower())
    except ValueError as exc:
        expected = ", ".join(source.value for source in RecencySource)
        raise ValidationError("recency", f"{value!r} (expected one of: {expected})") from exc


def collect_timestamps(
    root: PathLike,
    paths: Iterable[str],
    source: RecencySource | str,
) -> dict[str, int]:
    """Return epoch-second timestamps for ``paths``; files without one are omitted.

    ``commit`` outside a git work tree yields no timestamps.
    """

    resolved = parse_recency_source(source)
    wanted = sorted(set(paths))
    if resolved is RecencySource.NONE or not wanted:
        return {}

    root_path = Path(root).resolve()
    if resolved is RecencySource.COMMIT:
        repository = GitRepository(root_path)
        if not repository.is_repository():
            return {}
        return repository.commit_timestamps(wanted)

    timestamps: dict[str, int] = {}
    for path in wanted:
        file_path = local_path(root_path, path)
        try:
            timestamps[path] = int(file_path.stat().st_mtime)
        except OSError:
            continue
    return timestamps


__all__ = ["RecencySource", "collect_timestamps", "parse_recency_source"]
