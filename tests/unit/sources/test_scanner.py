"""
contextsmith — unit tests for repository file discovery

File: tests/unit/sources/test_scanner.py
Last updated: 2026-10-18

Purpose
- Validate directory walking, ignore/exclude/generated filtering, language and path filters,
  and generated-code markers.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import TYPE_CHECKING

import pytest

from contextsmith.errors import NotFoundError
from contextsmith.sources.scanner import (
    ScanOptions,
    has_generated_marker,
    matches_ignore_pattern,
    scan,
)

if TYPE_CHECKING:
    from pathlib import Path

TREE = {
    "src/app.py": "print('app')\n",
    "src/util.rs": "fn util() {}\n",
    "docs/readme.md": "# docs\n",
    "node_modules/pkg/index.js": "module.exports = 1\n",
    "gen/api_pb2.py": "# generated\n",
}


def _build_tree(root: Path) -> Path:
    for rel_path, content in TREE.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def _paths(root: Path, **options: object) -> list[str]:
    options.setdefault("use_git", False)
    return [item.path for item in scan(root, ScanOptions(**options))]  # type: ignore[arg-type]


@pytest.mark.unit
def test_walk_lists_every_file_sorted(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "repo")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref\n", encoding="utf-8")

    assert _paths(root) == sorted(TREE)


@pytest.mark.unit
def test_ignore_exclude_and_generated_filters(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "repo")

    paths = _paths(
        root,
        ignore=("node_modules",),
        exclude=("*.md",),
        generated=("*_pb2.py",),
    )

    assert paths == ["src/app.py", "src/util.rs"]


@pytest.mark.unit
def test_include_generated_flags_files(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "repo")

    files = scan(
        root,
        ScanOptions(generated=("*_pb2.py",), include_generated=True, lang="python", use_git=False),
    )

    assert [(item.path, item.language, item.is_generated) for item in files] == [
        ("gen/api_pb2.py", "python", True),
        ("src/app.py", "python", False),
    ]
    assert files[1].size == len("print('app')\n")


@pytest.mark.unit
def test_language_filter_uses_configured_extensions(tmp_path: Path) -> None:
    root = _build_tree(tmp_path / "repo")

    assert _paths(root, lang="Rust") == ["src/util.rs"]
    assert _paths(root, lang="docs", languages={"docs": ["md"]}) == ["docs/readme.md"]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path_glob", "expected"),
    [
        ("src", ["src/app.py", "src/util.rs"]),
        ("src/", ["src/app.py", "src/util.rs"]),
        ("src/*.rs", ["src/util.rs"]),
        ("*.md", ["docs/readme.md"]),
    ],
)
def test_path_filter(tmp_path: Path, path_glob: str, expected: list[str]) -> None:
    root = _build_tree(tmp_path / "repo")

    assert _paths(root, path_glob=path_glob, ignore=("node_modules",)) == expected


@pytest.mark.unit
def test_missing_root_is_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError, match="root directory not found"):
        scan(tmp_path / "absent")


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
@pytest.mark.unit
def test_git_listing_honors_gitignore(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    root = _build_tree(tmp_path / "repo")
    (root / ".gitignore").write_text("docs/\n", encoding="utf-8")
    subprocess.run(["git", "init", "-q"], cwd=root, check=True, capture_output=True)

    paths = [item.path for item in scan(root, ScanOptions(ignore=("node_modules",)))]

    assert paths == [".gitignore", "gen/api_pb2.py", "src/app.py", "src/util.rs"]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("a/node_modules/b.js", "node_modules", True),
        ("src/app.py", "app", False),
        ("build/out/x.js", "build/out", True),
        ("build/output.js", "build/out", False),
        ("web/x.min.js", "*.min.js", True),
        ("pkg/target/debug/x", "target/", True),
        ("src/gen/a.py", "src/gen*", True),
        ("src/app.py", " ", False),
    ],
)
def test_matches_ignore_pattern(path: str, pattern: str, expected: bool) -> None:
    assert matches_ignore_pattern(path, pattern) is expected


@pytest.mark.unit
def test_generated_markers_only_count_in_the_header() -> None:
    assert has_generated_marker("// Code generated by protoc. DO NOT EDIT.\nfn x() {}\n")
    assert has_generated_marker("# @generated\n")
    late = "\n" * 20 + "# do not edit\n"
    assert not has_generated_marker(late)
    assert not has_generated_marker("def handwritten():\n    pass\n")
