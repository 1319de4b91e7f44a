"""
contextsmith — unit tests for grep and symbol search

File: tests/unit/sources/test_search.py
Last updated: 2026-10-18

Purpose
- Validate literal/regex queries, symbol-definition patterns, file limits, and the skipping of
  binary, oversized, and generated files.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from contextsmith.domain.models import OriginKind
from contextsmith.errors import ValidationError
from contextsmith.sources.scanner import ScannedFile
from contextsmith.sources.search import (
    SearchQuery,
    build_symbol_pattern,
    candidates_from_matches,
    search_content,
    search_files,
)

if TYPE_CHECKING:
    from pathlib import Path


def _scanned(root: Path, files: dict[str, bytes]) -> list[ScannedFile]:
    scanned: list[ScannedFile] = []
    for rel_path, data in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        scanned.append(ScannedFile(path=rel_path, language="", is_generated=False, size=len(data)))
    return scanned


@pytest.mark.unit
def test_literal_query_escapes_regex_metacharacters() -> None:
    pattern = SearchQuery("a.b").compile()

    assert pattern.search("x = a.b") is not None
    assert pattern.search("x = axb") is None
    assert SearchQuery("a.b", regex=True).compile().search("axb") is not None
    assert SearchQuery("TODO", ignore_case=True).compile().search("# todo: x") is not None


@pytest.mark.unit
@pytest.mark.parametrize(("pattern", "regex"), [("", False), ("(", True)])
def test_invalid_queries_are_validation_errors(pattern: str, regex: bool) -> None:
    with pytest.raises(ValidationError, match="invalid pattern"):
        SearchQuery(pattern, regex=regex).compile()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("def run(self):", True),
        ("    async def run():", True),
        ("pub fn run() {", True),
        ("pub(crate) async fn run() {", True),
        ("export function run() {", True),
        ("export default class run {", True),
        ("class run:", True),
        ("const run = () => 1", True),
        ("def runner():", False),
        ("result = run()", False),
        ("# we run fast", False),
    ],
)
def test_symbol_pattern_matches_definitions(line: str, expected: bool) -> None:
    assert (build_symbol_pattern("run").search(line) is not None) is expected


@pytest.mark.unit
def test_blank_symbol_is_rejected() -> None:
    with pytest.raises(ValidationError, match="invalid symbol"):
        build_symbol_pattern("  ")


@pytest.mark.unit
def test_search_content_reports_one_match_per_line() -> None:
    matches = search_content(SearchQuery("x").compile(), "a\nx and x\nb\nx\n", "f.py")

    assert [(match.line_number, match.column, match.line_text) for match in matches] == [
        (2, 1, "x and x"),
        (4, 1, "x"),
    ]


@pytest.mark.unit
def test_search_files_skips_binary_oversized_and_generated(tmp_path: Path) -> None:
    files = _scanned(
        tmp_path,
        {
            "b.py": b"needle here\n",
            "a.py": b"no match\nneedle again\n",
            "bin.dat": b"needle\x00\x01",
            "gen.py": b"# @generated\nneedle\n",
            "big.py": b"needle\n" + b"x" * 200,
        },
    )

    result = search_files(
        tmp_path, files, SearchQuery("needle").compile(), max_file_bytes=100
    )

    assert [(match.file_path, match.line_number) for match in result.matches] == [
        ("a.py", 2),
        ("b.py", 1),
    ]
    assert result.files_searched == 2
    assert result.files_matched == 2
    assert result.matched_paths == ("a.py", "b.py")
    assert result.truncated is False


@pytest.mark.unit
def test_generated_marker_check_can_be_disabled(tmp_path: Path) -> None:
    files = _scanned(tmp_path, {"gen.py": b"# @generated\nneedle\n"})

    result = search_files(
        tmp_path, files, SearchQuery("needle").compile(), skip_generated_markers=False
    )

    assert result.matched_paths == ("gen.py",)


@pytest.mark.unit
def test_max_files_keeps_first_files_by_path(tmp_path: Path) -> None:
    files = _scanned(tmp_path, {"c.py": b"hit\n", "a.py": b"hit\n", "b.py": b"hit\n"})

    result = search_files(tmp_path, files, SearchQuery("hit").compile(), max_files=2)

    assert result.matched_paths == ("a.py", "b.py")
    assert result.truncated is True
    with pytest.raises(ValidationError):
        search_files(tmp_path, files, SearchQuery("hit").compile(), max_files=0)


@pytest.mark.unit
def test_matches_become_single_line_candidates(tmp_path: Path) -> None:
    files = _scanned(tmp_path, {"src/a.py": b"x\ndef run():\n"})
    result = search_files(tmp_path, files, build_symbol_pattern("run"))

    (candidate,) = candidates_from_matches(result.matches, OriginKind.SYMBOL_DEFINITION)

    assert (candidate.file_path, candidate.start_line, candidate.end_line) == ("src/a.py", 2, 2)
    assert candidate.origin_kind is OriginKind.SYMBOL_DEFINITION
    assert candidate.raw_text == "def run():"
