"""
contextsmith — filesystem utilities

File: src/contextsmith/utils/fs.py
Last updated: 2026-10-18

Purpose
- Read repository files the same way everywhere and write bundles, manifests, and config
  atomically.

Functional requirements
- Repository-relative POSIX paths map onto local paths under the root.
- Source text is decoded as UTF-8 with replacement so undecodable bytes never abort a run.
- A bundle or manifest is either fully written or not written at all.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path, PurePosixPath

PathLike = str | os.PathLike[str]

SOURCE_ENCODING = "utf-8"

__all__ = [
    "SOURCE_ENCODING",
    "atomic_write",
    "is_within",
    "local_path",
    "read_source_text",
]


def local_path(root: PathLike, relative_path: str) -> Path:
    """Map a repository-relative POSIX path onto the local filesystem under ``root``."""

    return Path(root).joinpath(*PurePosixPath(relative_path).parts)


def read_source_text(path: PathLike) -> str:
    return Path(path).read_bytes().decode(SOURCE_ENCODING, errors="replace")


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = SOURCE_ENCODING,
    create_parents: bool = False,
) -> None:
    """
    Write ``data`` to ``path`` through a temp file in the same directory.

    The temp file is fsynced and then moved over the target with ``os.replace``; on failure
    it is removed and the target is left untouched.
    """

    target = Path(path)
    if create_parents:
        target.parent.mkdir(parents=True, exist_ok=True)
    target_dir = target.parent.resolve(strict=True)
    if not target_dir.is_dir():
        raise NotADirectoryError(f"{target_dir!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target_dir)
    temp_path = Path(temp_name)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
        _sync_dir(target_dir)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is ``parent`` or lies below it."""

    try:
        resolved_parent = Path(parent).resolve(strict=True)
    except FileNotFoundError:
        return False
    if not resolved_parent.is_dir():
        return False
    return Path(child).resolve(strict=False).is_relative_to(resolved_parent)


def _sync_dir(path: Path) -> None:
    # Not every platform can fsync a directory; the rename already happened either way.
    if os.name == "nt":
        return
    flags = os.O_RDONLY | getattr(os, "O_DIRECTORY", 0)
    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
