"""Unit tests for atomic writes and path containment."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from contextsmith.utils.fs import atomic_write, is_within, local_path, read_source_text

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "bundle.md"
    target.write_text("old", encoding="utf-8")

    atomic_write(target, "new\r\nline")

    assert target.read_bytes() == b"new\r\nline"
    assert sorted(os.listdir(tmp_path)) == ["bundle.md"]


@pytest.mark.unit
def test_atomic_write_bytes_and_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "data.bin"

    atomic_write(target, b"\x00\x01", create_parents=True)

    assert target.read_bytes() == b"\x00\x01"


@pytest.mark.unit
def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "x.txt", "x")


@pytest.mark.unit
def test_is_within(tmp_path: Path) -> None:
    inner = tmp_path / "src" / "app.py"

    assert is_within(inner, tmp_path) is True
    assert is_within(tmp_path / ".." / "elsewhere", tmp_path) is False
    assert is_within(inner, tmp_path / "absent") is False


@pytest.mark.unit
def test_local_path_and_source_text(tmp_path: Path) -> None:
    target = local_path(tmp_path, "src/pkg/mod.py")
    target.parent.mkdir(parents=True)
    target.write_bytes(b"ok \xff\n")

    assert target == tmp_path / "src" / "pkg" / "mod.py"
    assert read_source_text(target) == "ok \ufffd\n"
