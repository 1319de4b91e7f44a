"""
contextsmith — manifest builder and determinism fingerprint

File: src/contextsmith/kernel/manifest.py
Last updated: 2026-10-18

Purpose
- Convert packer decisions into the versioned manifest record and bind repository state,
  configuration, command, and decisions into one ``determinism_fingerprint``.

Functional requirements
- Canonical serialization: one tab-separated line per entry in rank order, fixed field order,
  floats with fixed decimals, no NaN/Infinity.
- Forward-only write (``schema_version`` "2"); backward-compatible read of every version ever
  emitted ("1" legacy layout is upgraded on read).
- Manifest files are written atomically; a run either persists a full manifest or none.

Key interfaces / contracts
- Explain/Stats consumers read :class:`Manifest` and never re-derive decisions.
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from contextsmith.constants import (
    CANONICAL_FLOAT_DECIMALS,
    LEGACY_MANIFEST_SCHEMA_VERSION,
    LEGACY_SELECTION_STRATEGY,
    MANIFEST_FILENAME,
    MANIFEST_SCHEMA_VERSION,
    MANIFEST_SUFFIX,
    SELECTION_STRATEGY,
    SUPPORTED_MANIFEST_SCHEMA_VERSIONS,
)
from contextsmith.domain.models import (
    OriginKind,
    ReasonCode,
    SelectedBy,
    Signal,
    SignalVector,
    SnippetKey,
    normalize_relative_path,
    ordered_reason_codes,
    origin_from_reason_text,
)
from contextsmith.errors import NotFoundError, ParseError
from contextsmith.utils.fs import atomic_write
from contextsmith.utils.hashing import canonical_json, fingerprint_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from contextsmith.kernel.packer import PackResult

PathLike = str | os.PathLike[str]

_ESCAPES: Final[dict[str, str]] = {"\\": "\\\\", "\t": "\\t", "\n": "\\n", "\r": "\\r"}

# Legacy `pack` output records whole bundle sections as 0-0 and pinned paths as "must-include".
_LEGACY_WHOLE_SECTION: Final[tuple[int, int]] = (0, 0)
_LEGACY_MUST_REASON: Final[str] = "must-include"


@dataclass(frozen=True, slots=True)
class ManifestSummary:
    schema_version: str
    selection_strategy: str
    determinism_fingerprint: str
    budget: int
    reserve_tokens: int
    model_family: str
    candidate_count: int
    included_count: int
    total_tokens: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "selection_strategy": self.selection_strategy,
            "determinism_fingerprint": self.determinism_fingerprint,
            "budget": self.budget,
            "reserve_tokens": self.reserve_tokens,
            "model_family": self.model_family,
            "candidate_count": self.candidate_count,
            "included_count": self.included_count,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """Serialized (snippet, score, decision) triple plus the estimated token cost."""

    file_path: str
    start_line: int
    end_line: int
    origin_kinds: tuple[OriginKind, ...]
    rank_signals: SignalVector
    score: float
    included: bool
    selected_by: SelectedBy | None
    reason_codes: tuple[ReasonCode, ...]
    estimated_tokens: int

    def __post_init__(self) -> None:
        if self.included != (self.selected_by is not None):
            raise ValueError("selected_by must be set exactly when the entry is included")
        if not self.reason_codes:
            raise ValueError("reason_codes must not be empty")
        if not math.isfinite(self.score):
            raise ValueError("score must be finite")
        if self.estimated_tokens < 0:
            raise ValueError("estimated_tokens must be >= 0")

    @property
    def key(self) -> SnippetKey:
        return SnippetKey(self.file_path, self.start_line, self.end_line)

    def canonical_line(self) -> str:
        """Fixed-order, tab-separated rendering used for fingerprinting."""

        fields = [
            _escape(self.file_path),
            str(self.start_line),
            str(self.end_line),
            ",".join(kind.value for kind in self.origin_kinds),
            *(format_float(self.rank_signals.get(signal)) for signal in Signal),
            format_float(self.score),
            "1" if self.included else "0",
            self.selected_by.value if self.selected_by is not None else "-",
            ",".join(code.value for code in self.reason_codes),
            str(self.estimated_tokens),
        ]
        return "\t".join(fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "origin_kinds": [kind.value for kind in self.origin_kinds],
            "rank_signals": self.rank_signals.as_dict(),
            "score": self.score,
            "included": self.included,
            "selected_by": self.selected_by.value if self.selected_by is not None else None,
            "reason_codes": [code.value for code in self.reason_codes],
            "estimated_tokens": self.estimated_tokens,
        }


@dataclass(frozen=True, slots=True)
class Manifest:
    summary: ManifestSummary
    entries: tuple[ManifestEntry, ...]

    @property
    def included_entries(self) -> tuple[ManifestEntry, ...]:
        return tuple(entry for entry in self.entries if entry.included)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "entries": [entry.to_dict() for entry in self.entries],
        }

    def to_json(self) -> str:
        return (
            json.dumps(
                self.to_dict(),
                indent=2,
                sort_keys=True,
                ensure_ascii=False,
                allow_nan=False,
            )
            + "\n"
        )


def build_manifest(
    packed: PackResult,
    *,
    config_fingerprint: str,
    command_fingerprint: str,
    repo_state_fingerprint: str,
    candidate_count: int,
    selection_strategy: str = SELECTION_STRATEGY,
) -> Manifest:
    """Build the manifest for one packed run; entries keep the packer's (rank) order."""

    entries = tuple(
        ManifestEntry(
            file_path=item.snippet.file_path,
            start_line=item.snippet.start_line,
            end_line=item.snippet.end_line,
            origin_kinds=item.snippet.ordered_origin_kinds,
            rank_signals=item.score.signals,
            score=item.score.weighted_total,
            included=item.decision.included,
            selected_by=item.decision.selected_by,
            reason_codes=item.decision.reason_codes,
            estimated_tokens=item.estimated_tokens,
        )
        for item in packed.entries
    )
    fingerprint = determinism_fingerprint(
        repo_state_fingerprint=repo_state_fingerprint,
        config_fingerprint=config_fingerprint,
        command_fingerprint=command_fingerprint,
        entries=entries,
    )
    summary = ManifestSummary(
        schema_version=MANIFEST_SCHEMA_VERSION,
        selection_strategy=selection_strategy,
        determinism_fingerprint=fingerprint,
        budget=packed.budget_tokens,
        reserve_tokens=packed.reserve_tokens,
        model_family=packed.model_family.value,
        candidate_count=candidate_count,
        included_count=sum(1 for entry in entries if entry.included),
        total_tokens=sum(entry.estimated_tokens for entry in entries if entry.included),
    )
    return Manifest(summary=summary, entries=entries)


def canonical_serialization(entries: Iterable[ManifestEntry]) -> str:
    return "".join(entry.canonical_line() + "\n" for entry in entries)


def determinism_fingerprint(
    *,
    repo_state_fingerprint: str,
    config_fingerprint: str,
    command_fingerprint: str,
    entries: Iterable[ManifestEntry],
) -> str:
    """Hash of repo state, config, command and the canonical decision lines, in that order."""

    header = "\n".join(
        (
            f"repo_state\t{repo_state_fingerprint}",
            f"config\t{config_fingerprint}",
            f"command\t{command_fingerprint}",
        )
    )
    return fingerprint_text(header + "\n" + canonical_serialization(entries))


def config_fingerprint(config: Mapping[str, Any]) -> str:
    return fingerprint_text(canonical_json(config))


def command_fingerprint(command: str, arguments: Mapping[str, Any]) -> str:
    return fingerprint_text(canonical_json({"command": command, "arguments": arguments}))


def repo_state_fingerprint(
    file_digests: Iterable[tuple[str, str]],
    *,
    revision: str | None = None,
) -> str:
    """Fingerprint of the content each sliced file had at slice time (plus optional HEAD)."""

    lines = [f"revision\t{revision or '-'}"]
    lines.extend(f"{_escape(path)}\t{digest}" for path, digest in sorted(file_digests))
    return fingerprint_text("\n".join(lines) + "\n")


def format_float(value: float) -> str:
    """Fixed-decimal rendering; ``-0`` renders as ``0``."""

    if not math.isfinite(value):
        raise ValueError(f"non-finite value in canonical serialization: {value!r}")
    rendered = f"{value:.{CANONICAL_FLOAT_DECIMALS}f}"
    if rendered.startswith("-") and rendered.strip("-0.") == "":
        return rendered[1:]
    return rendered


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def manifest_sibling_path(output_path: PathLike) -> Path:
    """``out.md -> out.manifest.json``; an output directory gets ``manifest.json``."""

    target = Path(output_path)
    if target.is_dir():
        return target / MANIFEST_FILENAME
    return target.with_name(target.stem + MANIFEST_SUFFIX)


def resolve_manifest_path(path: PathLike) -> Path:
    """Accept a manifest, a bundle with a sibling manifest, or a directory with one."""

    candidate = Path(path)
    if candidate.is_dir():
        return candidate / MANIFEST_FILENAME
    if candidate.name == MANIFEST_FILENAME or candidate.name.endswith(MANIFEST_SUFFIX):
        return candidate
    sibling = manifest_sibling_path(candidate)
    if sibling.is_file():
        return sibling
    return candidate


def write_manifest(manifest: Manifest, path: PathLike) -> Path:
    target = Path(path)
    atomic_write(target, manifest.to_json(), create_parents=True)
    return target


def load_manifest(path: PathLike) -> Manifest:
    target = resolve_manifest_path(path)
    if not target.is_file():
        raise NotFoundError(str(target), what="manifest")
    try:
        text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(str(target), "manifest is not valid UTF-8") from exc
    return parse_manifest(text, source=str(target))


def parse_manifest(text: str, *, source: str = "<manifest>") -> Manifest:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(source, f"invalid JSON: {exc.msg} (line {exc.lineno})") from exc
    return manifest_from_dict(payload, source=source)


def manifest_from_dict(payload: object, *, source: str = "<manifest>") -> Manifest:
    """Deserialize any supported schema version into the current in-memory model."""

    if not isinstance(payload, dict):
        raise ParseError(source, "manifest must be a JSON object")
    summary = payload.get("summary")
    entries = payload.get("entries")
    if not isinstance(summary, dict):
        raise ParseError(source, "missing 'summary' object")
    if not isinstance(entries, list):
        raise ParseError(source, "missing 'entries' array")

    version = summary.get("schema_version", LEGACY_MANIFEST_SCHEMA_VERSION)
    if version not in SUPPORTED_MANIFEST_SCHEMA_VERSIONS:
        supported = ", ".join(SUPPORTED_MANIFEST_SCHEMA_VERSIONS)
        raise ParseError(
            source, f"unsupported schema_version {version!r} (supported: {supported})"
        )

    reader = _Reader(source)
    try:
        if version == LEGACY_MANIFEST_SCHEMA_VERSION:
            return _read_legacy(reader, summary, entries)
        return _read_current(reader, summary, entries)
    except ParseError:
        raise
    except (ValueError, TypeError) as exc:
        raise ParseError(source, str(exc)) from exc


class _Reader:
    """Typed field access that reports the offending JSON path."""

    def __init__(self, source: str) -> None:
        self.source = source

    def fail(self, where: str, message: str) -> ParseError:
        return ParseError(self.source, f"{where}: {message}")

    def required(self, mapping: Mapping[str, Any], key: str, where: str) -> Any:
        if key not in mapping:
            raise self.fail(f"{where}.{key}", "missing required field")
        return mapping[key]

    def integer(self, mapping: Mapping[str, Any], key: str, where: str) -> int:
        value = self.required(mapping, key, where)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise self.fail(f"{where}.{key}", "expected a non-negative integer")
        return value

    def number(self, mapping: Mapping[str, Any], key: str, where: str) -> float:
        value = self.required(mapping, key, where)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.fail(f"{where}.{key}", "expected a number")
        if not math.isfinite(value):
            raise self.fail(f"{where}.{key}", "expected a finite number")
        return float(value)

    def string(self, mapping: Mapping[str, Any], key: str, where: str) -> str:
        value = self.required(mapping, key, where)
        if not isinstance(value, str):
            raise self.fail(f"{where}.{key}", "expected a string")
        return value

    def boolean(self, mapping: Mapping[str, Any], key: str, where: str) -> bool:
        value = self.required(mapping, key, where)
        if not isinstance(value, bool):
            raise self.fail(f"{where}.{key}", "expected a boolean")
        return value

    def string_list(self, mapping: Mapping[str, Any], key: str, where: str) -> list[str]:
        value = self.required(mapping, key, where)
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise self.fail(f"{where}.{key}", "expected an array of strings")
        return value

    def mapping(self, value: object, where: str) -> Mapping[str, Any]:
        if not isinstance(value, dict):
            raise self.fail(where, "expected an object")
        return value


def _read_current(
    reader: _Reader, summary: Mapping[str, Any], raw_entries: Sequence[object]
) -> Manifest:
    parsed_summary = ManifestSummary(
        schema_version=MANIFEST_SCHEMA_VERSION,
        selection_strategy=reader.string(summary, "selection_strategy", "summary"),
        determinism_fingerprint=reader.string(summary, "determinism_fingerprint", "summary"),
        budget=reader.integer(summary, "budget", "summary"),
        reserve_tokens=reader.integer(summary, "reserve_tokens", "summary"),
        model_family=reader.string(summary, "model_family", "summary"),
        candidate_count=reader.integer(summary, "candidate_count", "summary"),
        included_count=reader.integer(summary, "included_count", "summary"),
        total_tokens=reader.integer(summary, "total_tokens", "summary"),
    )

    entries: list[ManifestEntry] = []
    for index, raw in enumerate(raw_entries):
        where = f"entries[{index}]"
        item = reader.mapping(raw, where)
        signals = reader.mapping(reader.required(item, "rank_signals", where), where)
        signal_where = f"{where}.rank_signals"
        kinds = {OriginKind(kind) for kind in reader.string_list(item, "origin_kinds", where)}
        if not kinds:
            raise reader.fail(f"{where}.origin_kinds", "must not be empty")
        selected_raw = item.get("selected_by")
        if selected_raw is not None and not isinstance(selected_raw, str):
            raise reader.fail(f"{where}.selected_by", "expected a string or null")
        entries.append(
            ManifestEntry(
                file_path=_entry_path(reader, item, where),
                start_line=reader.integer(item, "start_line", where),
                end_line=reader.integer(item, "end_line", where),
                origin_kinds=tuple(sorted(kinds, key=lambda kind: kind.priority)),
                rank_signals=SignalVector(
                    **{
                        signal.value: reader.number(signals, signal.value, signal_where)
                        for signal in Signal
                    }
                ),
                score=reader.number(item, "score", where),
                included=reader.boolean(item, "included", where),
                selected_by=SelectedBy(selected_raw) if selected_raw is not None else None,
                reason_codes=ordered_reason_codes(
                    reader.string_list(item, "reason_codes", where)
                ),
                estimated_tokens=reader.integer(item, "estimated_tokens", where),
            )
        )
        _check_range(entries[-1])

    return Manifest(summary=parsed_summary, entries=tuple(entries))


def _read_legacy(
    reader: _Reader, summary: Mapping[str, Any], raw_entries: Sequence[object]
) -> Manifest:
    entries: list[ManifestEntry] = []
    for index, raw in enumerate(raw_entries):
        where = f"entries[{index}]"
        item = reader.mapping(raw, where)
        reason = str(item.get("reason", ""))
        origin = origin_from_reason_text(reason)
        included = reader.boolean(item, "included", where)
        selected_by: SelectedBy | None = None
        if included:
            forced = reason.strip().lower() == _LEGACY_MUST_REASON
            selected_by = SelectedBy.MUST if forced else SelectedBy.RANKED
        codes: list[ReasonCode] = [ReasonCode(origin.value)]
        if not included:
            codes.append(ReasonCode.BUDGET_EXCLUDED)
        entries.append(
            ManifestEntry(
                file_path=_entry_path(reader, item, where),
                start_line=reader.integer(item, "start_line", where),
                end_line=reader.integer(item, "end_line", where),
                origin_kinds=(origin,),
                rank_signals=SignalVector(),
                score=reader.number(item, "score", where),
                included=included,
                selected_by=selected_by,
                reason_codes=ordered_reason_codes(codes),
                estimated_tokens=reader.integer(item, "token_estimate", where),
            )
        )
        if (entries[-1].start_line, entries[-1].end_line) != _LEGACY_WHOLE_SECTION:
            _check_range(entries[-1])

    budget = summary.get("budget")
    parsed_summary = ManifestSummary(
        schema_version=LEGACY_MANIFEST_SCHEMA_VERSION,
        selection_strategy=LEGACY_SELECTION_STRATEGY,
        determinism_fingerprint="",
        budget=reader.integer(summary, "budget", "summary") if budget is not None else 0,
        reserve_tokens=reader.integer(summary, "reserve_tokens", "summary"),
        model_family=reader.string(summary, "model", "summary"),
        candidate_count=reader.integer(summary, "snippet_count", "summary"),
        included_count=reader.integer(summary, "included_count", "summary"),
        total_tokens=reader.integer(summary, "total_tokens", "summary"),
    )
    return Manifest(summary=parsed_summary, entries=tuple(entries))


def _entry_path(reader: _Reader, item: Mapping[str, Any], where: str) -> str:
    return normalize_relative_path(
        reader.string(item, "file_path", where), field_name=f"{where}.file_path"
    )


def _check_range(entry: ManifestEntry) -> None:
    if entry.start_line < 1 or entry.end_line < entry.start_line:
        raise ValueError(f"{entry.key}: invalid line range")


def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in value)


__all__ = [
    "Manifest",
    "ManifestEntry",
    "ManifestSummary",
    "build_manifest",
    "canonical_serialization",
    "command_fingerprint",
    "config_fingerprint",
    "determinism_fingerprint",
    "format_float",
    "load_manifest",
    "manifest_from_dict",
    "manifest_sibling_path",
    "parse_manifest",
    "repo_state_fingerprint",
    "resolve_manifest_path",
    "write_manifest",
]
