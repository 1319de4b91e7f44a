"""
contextsmith — unit tests for the manifest builder and persistence

File: tests/unit/kernel/test_manifest.py
Last updated: 2026-10-18

Purpose
- Validate manifest construction, the determinism fingerprint, canonical float formatting,
  persistence paths, and backward-compatible reads of legacy manifests.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from contextsmith.constants import (
    LEGACY_SELECTION_STRATEGY,
    MANIFEST_SCHEMA_VERSION,
    SELECTION_STRATEGY,
)
from contextsmith.domain.models import OriginKind, ReasonCode, SelectedBy, Snippet
from contextsmith.errors import NotFoundError, ParseError
from contextsmith.kernel.manifest import (
    Manifest,
    build_manifest,
    canonical_serialization,
    command_fingerprint,
    config_fingerprint,
    format_float,
    load_manifest,
    manifest_sibling_path,
    parse_manifest,
    repo_state_fingerprint,
    resolve_manifest_path,
    write_manifest,
)
from contextsmith.kernel.packer import pack
from contextsmith.kernel.ranker import rank
from contextsmith.kernel.tokens import CharRatioEstimator

if TYPE_CHECKING:
    from pathlib import Path

WEIGHTS = {"diff": 2.0, "proximity": 1.5}


def _manifest(*, config: str = "cfg", budget: int = 6) -> Manifest:
    snippets = [
        Snippet("src/a.py", 1, 2, "aaaa", frozenset({OriginKind.DIFF_HUNK})),
        Snippet("src/a.py", 9, 9, "bbbbbbbb", frozenset({OriginKind.GREP_MATCH})),
        Snippet(
            "src/b.py",
            3,
            3,
            "cc",
            frozenset({OriginKind.GREP_MATCH, OriginKind.SYMBOL_DEFINITION}),
        ),
    ]
    packed = pack(
        rank(snippets, WEIGHTS),
        budget,
        estimator=CharRatioEstimator(ratio_override=1.0),
        reserve_tokens=1,
    )
    return build_manifest(
        packed,
        config_fingerprint=config_fingerprint({"config": config}),
        command_fingerprint=command_fingerprint("diff", {"staged": False}),
        repo_state_fingerprint=repo_state_fingerprint(
            [("src/b.py", "digest-b"), ("src/a.py", "digest-a")], revision="abc123"
        ),
        candidate_count=4,
    )


@pytest.mark.unit
def test_build_manifest_records_every_decision_in_rank_order() -> None:
    manifest = _manifest()

    assert [str(entry.key) for entry in manifest.entries] == [
        "src/a.py:1-2",
        "src/a.py:9-9",
        "src/b.py:3-3",
    ]
    first, second, third = manifest.entries
    assert first.included is True
    assert first.selected_by is SelectedBy.RANKED
    assert second.included is False
    assert second.reason_codes == (ReasonCode.GREP_MATCH, ReasonCode.BUDGET_EXCLUDED)
    assert third.included is False
    assert third.origin_kinds == (OriginKind.SYMBOL_DEFINITION, OriginKind.GREP_MATCH)

    summary = manifest.summary
    assert summary.schema_version == MANIFEST_SCHEMA_VERSION
    assert summary.selection_strategy == SELECTION_STRATEGY
    assert summary.budget == 6
    assert summary.reserve_tokens == 1
    assert summary.model_family == "gpt-4"
    assert summary.candidate_count == 4
    assert summary.included_count == 1
    assert summary.total_tokens == 4
    assert summary.determinism_fingerprint.startswith("sha256:")


@pytest.mark.unit
def test_determinism_fingerprint_is_stable_and_sensitive_to_inputs() -> None:
    baseline = _manifest().summary.determinism_fingerprint

    assert _manifest().summary.determinism_fingerprint == baseline
    assert (
        _manifest(config="other").summary.determinism_fingerprint != baseline
    )
    assert _manifest(budget=100).summary.determinism_fingerprint != baseline


@pytest.mark.unit
def test_canonical_serialization_uses_fixed_field_order() -> None:
    lines = canonical_serialization(_manifest().entries).splitlines()

    assert lines[0].split("\t") == [
        "src/a.py",
        "1",
        "2",
        "diff_hunk",
        "0.000000",
        "1.000000",
        "0.000000",
        "0.000000",
        "0.000000",
        "2.000000",
        "1",
        "ranked",
        "diff_hunk",
        "4",
    ]
    assert lines[1].endswith("\t0\t-\tgrep_match,budget_excluded\t8")


@pytest.mark.unit
def test_repo_state_fingerprint_ignores_digest_order() -> None:
    forward = repo_state_fingerprint([("a", "1"), ("b", "2")], revision=None)
    backward = repo_state_fingerprint([("b", "2"), ("a", "1")], revision=None)

    assert forward == backward
    assert forward != repo_state_fingerprint([("a", "1"), ("b", "2")], revision="HEAD")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.0, "0.000000"), (-0.0, "0.000000"), (-1e-9, "0.000000"), (1.5, "1.500000")],
)
def test_format_float(value: float, expected: str) -> None:
    assert format_float(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_format_float_rejects_non_finite(value: float) -> None:
    with pytest.raises(ValueError):
        format_float(value)


@pytest.mark.unit
def test_manifest_json_parses_back_to_the_same_record() -> None:
    manifest = _manifest()

    assert parse_manifest(manifest.to_json()) == manifest


@pytest.mark.unit
def test_write_and_load_manifest(tmp_path: Path) -> None:
    manifest = _manifest()
    target = tmp_path / "nested" / "out.manifest.json"

    written = write_manifest(manifest, target)

    assert written == target
    assert json.loads(target.read_text(encoding="utf-8"))["summary"]["schema_version"] == "2"
    assert load_manifest(target) == manifest


@pytest.mark.unit
def test_load_manifest_missing_file_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError, match="manifest not found"):
        load_manifest(tmp_path / "absent.manifest.json")


@pytest.mark.unit
def test_manifest_path_resolution(tmp_path: Path) -> None:
    bundle = tmp_path / "ctx.md"
    bundle.write_text("# bundle\n", encoding="utf-8")

    assert manifest_sibling_path(bundle) == tmp_path / "ctx.manifest.json"
    assert manifest_sibling_path(tmp_path) == tmp_path / "manifest.json"
    # Without a sibling manifest the path is returned unchanged.
    assert resolve_manifest_path(bundle) == bundle

    sibling = tmp_path / "ctx.manifest.json"
    sibling.write_text("{}", encoding="utf-8")
    assert resolve_manifest_path(bundle) == sibling
    assert resolve_manifest_path(tmp_path) == tmp_path / "manifest.json"


@pytest.mark.unit
def test_legacy_manifest_is_upgraded_on_read() -> None:
    legacy = {
        "summary": {
            "budget": 500,
            "reserve_tokens": 50,
            "model": "claude",
            "snippet_count": 2,
            "included_count": 1,
            "total_tokens": 30,
        },
        "entries": [
            {
                "file_path": "src/lib.rs",
                "start_line": 1,
                "end_line": 10,
                "reason": "modified",
                "included": True,
                "score": 2.5,
                "token_estimate": 30,
            },
            {
                "file_path": "src/util.rs",
                "start_line": 4,
                "end_line": 4,
                "reason": "grep match",
                "included": False,
                "score": 0.5,
                "token_estimate": 12,
            },
        ],
    }

    manifest = parse_manifest(json.dumps(legacy))

    assert manifest.summary.schema_version == "1"
    assert manifest.summary.selection_strategy == LEGACY_SELECTION_STRATEGY
    assert manifest.summary.determinism_fingerprint == ""
    assert manifest.summary.model_family == "claude"
    first, second = manifest.entries
    assert first.origin_kinds == (OriginKind.DIFF_HUNK,)
    assert first.selected_by is SelectedBy.RANKED
    assert first.estimated_tokens == 30
    assert second.reason_codes == (ReasonCode.GREP_MATCH, ReasonCode.BUDGET_EXCLUDED)
    assert second.selected_by is None


@pytest.mark.unit
def test_legacy_pack_manifest_with_whole_sections_is_readable() -> None:
    def section(path: str, reason: str, included: bool, tokens: int) -> dict[str, object]:
        return {
            "file_path": path,
            "start_line": 0,
            "end_line": 0,
            "token_estimate": tokens,
            "char_count": tokens * 4,
            "reason": reason,
            "score": 0.0,
            "included": included,
            "language": "rust",
        }

    legacy = {
        "summary": {
            "total_tokens": 12,
            "budget": None,
            "reserve_tokens": 0,
            "snippet_count": 3,
            "included_count": 2,
            "model": "gpt",
            "weights_used": None,
        },
        "entries": [
            section("src/main.rs", "must-include", True, 9),
            section("src/lib.rs", "modified", True, 3),
            section("tests/test.rs", "added", False, 11),
        ],
    }

    manifest = parse_manifest(json.dumps(legacy))

    assert manifest.summary.budget == 0
    assert manifest.summary.candidate_count == 3
    must, ranked, excluded = manifest.entries
    assert str(must.key) == "src/main.rs:0-0"
    assert must.selected_by is SelectedBy.MUST
    assert must.origin_kinds == (OriginKind.EXPLICIT_FILE,)
    assert ranked.selected_by is SelectedBy.RANKED
    assert ranked.reason_codes == (ReasonCode.DIFF_HUNK,)
    assert excluded.selected_by is None
    assert excluded.reason_codes == (ReasonCode.DIFF_HUNK, ReasonCode.BUDGET_EXCLUDED)


@pytest.mark.unit
def test_legacy_manifest_still_rejects_partial_zero_ranges() -> None:
    legacy = {
        "summary": {
            "reserve_tokens": 0,
            "model": "gpt",
            "snippet_count": 1,
            "included_count": 1,
            "total_tokens": 1,
        },
        "entries": [
            {
                "file_path": "src/main.rs",
                "start_line": 0,
                "end_line": 4,
                "reason": "modified",
                "included": True,
                "score": 0.0,
                "token_estimate": 1,
            }
        ],
    }

    with pytest.raises(ParseError, match="invalid line range"):
        parse_manifest(json.dumps(legacy))


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("not json", "invalid JSON"),
        ("[]", "must be a JSON object"),
        ('{"entries": []}', "missing 'summary'"),
        ('{"summary": {}}', "missing 'entries'"),
        ('{"summary": {"schema_version": "9"}, "entries": []}', "unsupported schema_version"),
    ],
)
def test_parse_manifest_rejects_malformed_documents(text: str, message: str) -> None:
    with pytest.raises(ParseError, match=message):
        parse_manifest(text, source="m.json")


@pytest.mark.unit
def test_parse_manifest_reports_the_offending_field() -> None:
    payload = _manifest().to_dict()
    del payload["entries"][0]["score"]

    with pytest.raises(ParseError, match=r"entries\[0\]\.score: missing required field"):
        parse_manifest(json.dumps(payload))


@pytest.mark.unit
def test_parse_manifest_rejects_inconsistent_decisions() -> None:
    payload = _manifest().to_dict()
    payload["entries"][0]["selected_by"] = None

    with pytest.raises(ParseError, match="selected_by"):
        parse_manifest(json.dumps(payload))
