"""
contextsmith — unit tests for the candidate slicer

File: tests/unit/kernel/test_slicer.py
Last updated: 2026-10-18

Purpose
- Validate padding, merging, bounds checks, and detached slicing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from contextsmith.domain.models import Candidate, OriginKind
from contextsmith.errors import InvalidRangeError, NotFoundError, ValidationError
from contextsmith.kernel.slicer import (
    DETACHED_DIGEST,
    FilesystemLineSource,
    MappingLineSource,
    SliceResult,
    slice_candidates,
    split_lines,
)

if TYPE_CHECKING:
    from pathlib import Path

TEN_LINES = "\n".join(f"line {number}" for number in range(1, 11)) + "\n"


def _spans(result: SliceResult) -> list[tuple[str, int, int]]:
    return [(s.file_path, s.start_line, s.end_line) for s in result.snippets]


@pytest.mark.unit
def test_split_lines_handles_trailing_newline_and_crlf() -> None:
    assert split_lines("") == ()
    assert split_lines("a\nb\n") == ("a", "b")
    assert split_lines("a\r\nb") == ("a", "b")
    assert split_lines("\n") == ("",)


@pytest.mark.unit
def test_context_padding_is_clamped_to_file_bounds() -> None:
    source = MappingLineSource({"a.py": TEN_LINES})
    candidates = [
        Candidate("a.py", 1, 1, OriginKind.GREP_MATCH),
        Candidate("a.py", 10, 10, OriginKind.GREP_MATCH),
    ]

    result = slice_candidates(candidates, source, context_lines=2)

    assert _spans(result) == [("a.py", 1, 3), ("a.py", 8, 10)]
    assert result.snippets[0].text == "line 1\nline 2\nline 3"
    assert result.candidate_count == 2


@pytest.mark.unit
def test_hunks_only_disables_padding() -> None:
    source = MappingLineSource({"a.py": TEN_LINES})
    candidates = [Candidate("a.py", 5, 5, OriginKind.DIFF_HUNK)]

    result = slice_candidates(candidates, source, context_lines=3, hunks_only=True)

    assert _spans(result) == [("a.py", 5, 5)]


@pytest.mark.unit
def test_overlapping_and_adjacent_candidates_merge_with_union_of_origins() -> None:
    source = MappingLineSource({"a.py": TEN_LINES})
    candidates = [
        Candidate("a.py", 4, 5, OriginKind.GREP_MATCH),
        Candidate("a.py", 2, 3, OriginKind.DIFF_HUNK),
        Candidate("a.py", 5, 6, OriginKind.SYMBOL_DEFINITION),
    ]

    result = slice_candidates(candidates, source)

    assert _spans(result) == [("a.py", 2, 6)]
    assert result.snippets[0].origin_kinds == frozenset(
        {OriginKind.GREP_MATCH, OriginKind.DIFF_HUNK, OriginKind.SYMBOL_DEFINITION}
    )


@pytest.mark.unit
def test_merge_gap_joins_nearby_ranges() -> None:
    source = MappingLineSource({"a.py": TEN_LINES})
    candidates = [
        Candidate("a.py", 1, 2, OriginKind.GREP_MATCH),
        Candidate("a.py", 5, 6, OriginKind.GREP_MATCH),
    ]

    assert _spans(slice_candidates(candidates, source, merge_gap=0)) == [
        ("a.py", 1, 2),
        ("a.py", 5, 6),
    ]
    assert _spans(slice_candidates(candidates, source, merge_gap=2)) == [("a.py", 1, 6)]


@pytest.mark.unit
def test_snippets_are_ordered_by_path_then_line() -> None:
    source = MappingLineSource({"b.py": TEN_LINES, "a.py": TEN_LINES})
    candidates = [
        Candidate("b.py", 1, 1, OriginKind.GREP_MATCH),
        Candidate("a.py", 7, 7, OriginKind.GREP_MATCH),
        Candidate("a.py", 2, 2, OriginKind.GREP_MATCH),
    ]

    result = slice_candidates(candidates, source)

    assert _spans(result) == [("a.py", 2, 2), ("a.py", 7, 7), ("b.py", 1, 1)]
    assert [path for path, _ in result.file_digests] == ["a.py", "b.py"]


@pytest.mark.unit
def test_candidate_past_end_of_file_is_rejected() -> None:
    source = MappingLineSource({"a.py": "one\ntwo\n"})

    with pytest.raises(InvalidRangeError, match="outside current file bounds"):
        slice_candidates([Candidate("a.py", 2, 3, OriginKind.GREP_MATCH)], source)


@pytest.mark.unit
def test_detached_file_uses_candidate_text() -> None:
    source = MappingLineSource({"gone.py": None})
    candidates = [
        Candidate("gone.py", 3, 4, OriginKind.DIFF_HUNK, raw_text="old 3\nold 4"),
        Candidate("gone.py", 1, 2, OriginKind.DIFF_HUNK, raw_text="old 1\nold 2"),
    ]

    result = slice_candidates(candidates, source, context_lines=5)

    assert _spans(result) == [("gone.py", 1, 4)]
    assert result.snippets[0].text == "old 1\nold 2\nold 3\nold 4"
    assert result.file_digests == (("gone.py", DETACHED_DIGEST),)


@pytest.mark.unit
def test_unknown_file_is_rejected_instead_of_sliced_detached() -> None:
    source = MappingLineSource({})
    candidate = Candidate("x.md", 1, 1, OriginKind.EXPLICIT_FILE, raw_text="body")

    with pytest.raises(NotFoundError, match="file not found: x.md"):
        slice_candidates([candidate], source)


@pytest.mark.unit
def test_overlapping_detached_candidates_share_their_common_lines() -> None:
    source = MappingLineSource({"gone.rs": None})
    first = "\n".join(f"old {number}" for number in range(1, 6))
    second = "\n".join(f"old {number}" for number in range(4, 10))
    candidates = [
        Candidate("gone.rs", 4, 9, OriginKind.DIFF_HUNK, raw_text=second),
        Candidate("gone.rs", 1, 5, OriginKind.DIFF_HUNK, raw_text=first),
        Candidate("gone.rs", 2, 3, OriginKind.GREP_MATCH, raw_text="old 2\nold 3"),
    ]

    result = slice_candidates(candidates, source)

    assert _spans(result) == [("gone.rs", 1, 9)]
    assert split_lines(result.snippets[0].text) == tuple(
        f"old {number}" for number in range(1, 10)
    )


@pytest.mark.unit
@pytest.mark.parametrize(("name", "value"), [("context_lines", -1), ("merge_gap", -2)])
def test_negative_configuration_is_rejected(name: str, value: int) -> None:
    source = MappingLineSource({"a.py": TEN_LINES})
    candidates = [Candidate("a.py", 1, 1, OriginKind.GREP_MATCH)]

    with pytest.raises(ValidationError):
        slice_candidates(candidates, source, **{name: value})


@pytest.mark.unit
def test_filesystem_line_source_reads_and_honors_detached_paths(tmp_path: Path) -> None:
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "mod.py").write_text("a\nb\n", encoding="utf-8")
    source = FilesystemLineSource(tmp_path, detached_paths=["pkg/old.py"])

    assert source.read_lines("pkg/mod.py") == ("a", "b")
    assert source.read_lines("pkg/old.py") is None
    with pytest.raises(NotFoundError):
        source.read_lines("pkg/missing.py")


@pytest.mark.unit
def test_missing_file_that_is_not_detached_fails_the_slice(tmp_path: Path) -> None:
    source = FilesystemLineSource(tmp_path)

    with pytest.raises(NotFoundError, match="file not found: gone.py"):
        slice_candidates([Candidate("gone.py", 3, 7, OriginKind.GREP_MATCH)], source)


@pytest.mark.unit
def test_filesystem_line_source_caches_first_read(tmp_path: Path) -> None:
    target = tmp_path / "a.txt"
    target.write_text("first\n", encoding="utf-8")
    source = FilesystemLineSource(tmp_path)

    assert source.read_lines("a.txt") == ("first",)
    target.write_text("second\n", encoding="utf-8")
    assert source.read_lines("a.txt") == ("first",)
