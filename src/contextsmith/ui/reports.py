"""
contextsmith — manifest reports for ``explain`` and ``stats``

File: src/contextsmith/ui/reports.py
Last updated: 2026-10-18

Purpose
- Turn a loaded manifest into deterministic report payloads and render them as text or JSON.

Functional requirements
- ``explain`` lists entries in manifest order with status, selected_by, reasons, tokens, and
  per-signal scores; ``--top N`` keeps the first N entries.
- ``stats`` reports totals, budget utilization, counts by selected_by and reason code, the top
  files by included tokens, and included tokens by language.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from contextsmith.domain.models import ReasonCode, SelectedBy, Signal
from contextsmith.kernel.manifest import format_float
from contextsmith.utils.languages import infer_language

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from contextsmith.kernel.manifest import Manifest, ManifestEntry
    from contextsmith.ui.render import CLIRenderer

UNKNOWN_LANGUAGE = "unknown"

_T = TypeVar("_T")


@dataclass(frozen=True, slots=True)
class FileTokens:
    file_path: str
    tokens: int
    snippets: int


@dataclass(frozen=True, slots=True)
class ManifestStats:
    candidate_count: int
    included_count: int
    excluded_count: int
    total_tokens: int
    budget: int
    reserve_tokens: int
    available_tokens: int
    utilization: float
    by_selected_by: tuple[tuple[str, int], ...]
    by_reason_code: tuple[tuple[str, int], ...]
    top_files: tuple[FileTokens, ...]
    tokens_by_language: tuple[tuple[str, int], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate_count": self.candidate_count,
            "included_count": self.included_count,
            "excluded_count": self.excluded_count,
            "total_tokens": self.total_tokens,
            "budget": self.budget,
            "reserve_tokens": self.reserve_tokens,
            "available_tokens": self.available_tokens,
            "utilization": round(self.utilization, 6),
            "by_selected_by": dict(self.by_selected_by),
            "by_reason_code": dict(self.by_reason_code),
            "top_files": [
                {"file_path": item.file_path, "tokens": item.tokens, "snippets": item.snippets}
                for item in self.top_files
            ],
            "tokens_by_language": dict(self.tokens_by_language),
        }


def explain_payload(
    manifest: Manifest, *, source: str, top: int | None = None
) -> dict[str, Any]:
    entries = _limit(manifest.entries, top)
    return {
        "command": "explain",
        "manifest": source,
        "summary": manifest.summary.to_dict(),
        "shown": len(entries),
        "entries": [entry.to_dict() for entry in entries],
    }


def render_explain(
    renderer: CLIRenderer, manifest: Manifest, *, source: str, top: int | None = None
) -> None:
    summary = manifest.summary
    entries = _limit(manifest.entries, top)

    renderer.heading(f"Manifest: {source}")
    renderer.kv("schema_version", summary.schema_version)
    renderer.kv("selection_strategy", summary.selection_strategy)
    renderer.kv("fingerprint", summary.determinism_fingerprint or "-")
    renderer.kv(
        "included",
        f"{summary.included_count} of {len(manifest.entries)} snippets, "
        f"~{summary.total_tokens} tokens (budget: {summary.budget}, "
        f"reserve: {summary.reserve_tokens})",
    )

    if not entries:
        renderer.section("No entries.")
        return

    renderer.section("Entries (manifest order):")
    for index, entry in enumerate(entries, start=1):
        status = "INCLUDED" if entry.included else "excluded"
        selected = entry.selected_by.value if entry.selected_by is not None else "-"
        renderer.text(f"{index:>4}. [{status}] {entry.key}")
        renderer.text(f"      selected_by: {selected}")
        renderer.text(f"      reasons: {', '.join(code.value for code in entry.reason_codes)}")
        score = format_float(entry.score)
        renderer.text(f"      tokens: {entry.estimated_tokens}  score: {score}")
        renderer.text(f"      signals: {_signals_text(entry)}")

    hidden = len(manifest.entries) - len(entries)
    if hidden > 0:
        renderer.blank()
        renderer.text(f"... {hidden} more entries (use --top to show more)")


def compute_stats(
    manifest: Manifest,
    *,
    top: int | None = None,
    languages: Mapping[str, Sequence[str]] | None = None,
) -> ManifestStats:
    summary = manifest.summary
    included = manifest.included_entries
    total_tokens = sum(entry.estimated_tokens for entry in included)
    available = max(summary.budget - summary.reserve_tokens, 0)
    utilization = total_tokens / available if available > 0 else 0.0

    selected_counts: Counter[str] = Counter(
        entry.selected_by.value for entry in included if entry.selected_by is not None
    )
    by_selected_by = tuple(
        (selected.value, selected_counts[selected.value])
        for selected in SelectedBy
        if selected_counts[selected.value]
    )

    reason_counts: Counter[str] = Counter(
        code.value for entry in manifest.entries for code in entry.reason_codes
    )
    by_reason_code = tuple(
        (code.value, reason_counts[code.value]) for code in ReasonCode if reason_counts[code.value]
    )

    per_file_tokens: Counter[str] = Counter()
    per_file_snippets: Counter[str] = Counter()
    per_language: Counter[str] = Counter()
    for entry in included:
        per_file_tokens[entry.file_path] += entry.estimated_tokens
        per_file_snippets[entry.file_path] += 1
        language = infer_language(entry.file_path, languages) or UNKNOWN_LANGUAGE
        per_language[language] += entry.estimated_tokens

    ordered_files = sorted(per_file_tokens, key=lambda path: (-per_file_tokens[path], path))
    top_files = tuple(
        FileTokens(path, per_file_tokens[path], per_file_snippets[path])
        for path in _limit(ordered_files, top)
    )
    tokens_by_language = tuple(
        (language, per_language[language])
        for language in sorted(per_language, key=lambda name: (-per_language[name], name))
    )

    return ManifestStats(
        candidate_count=summary.candidate_count,
        included_count=len(included),
        excluded_count=len(manifest.entries) - len(included),
        total_tokens=total_tokens,
        budget=summary.budget,
        reserve_tokens=summary.reserve_tokens,
        available_tokens=available,
        utilization=utilization,
        by_selected_by=by_selected_by,
        by_reason_code=by_reason_code,
        top_files=top_files,
        tokens_by_language=tokens_by_language,
    )


def stats_payload(stats: ManifestStats, *, source: str) -> dict[str, Any]:
    return {"command": "stats", "manifest": source, "stats": stats.to_dict()}


def render_stats(renderer: CLIRenderer, stats: ManifestStats, *, source: str) -> None:
    renderer.heading(f"Manifest: {source}")
    renderer.kv("candidates", stats.candidate_count)
    renderer.kv("included", stats.included_count)
    renderer.kv("excluded", stats.excluded_count)
    renderer.kv("total tokens", stats.total_tokens)
    renderer.kv(
        "budget",
        f"{stats.budget} (reserve: {stats.reserve_tokens}, available: {stats.available_tokens})",
    )
    renderer.kv("utilization", f"{stats.utilization * 100:.1f}%")

    renderer.table(
        ["selected_by", "count"],
        [[name, str(count)] for name, count in stats.by_selected_by],
        title="By selection:",
    )
    renderer.table(
        ["reason", "count"],
        [[name, str(count)] for name, count in stats.by_reason_code],
        title="By reason code:",
    )
    renderer.table(
        ["file", "tokens", "snippets"],
        [[item.file_path, str(item.tokens), str(item.snippets)] for item in stats.top_files],
        title="Top files by tokens:",
    )
    renderer.table(
        ["language", "tokens"],
        [[name, str(tokens)] for name, tokens in stats.tokens_by_language],
        title="Tokens by language:",
    )


def _signals_text(entry: ManifestEntry) -> str:
    return " ".join(
        f"{signal.value}={format_float(entry.rank_signals.get(signal))}" for signal in Signal
    )


def _limit(items: Sequence[_T], top: int | None) -> tuple[_T, ...]:
    if top is None:
        return tuple(items)
    return tuple(items[:top])


__all__ = [
    "FileTokens",
    "ManifestStats",
    "compute_stats",
    "explain_payload",
    "render_explain",
    "render_stats",
    "stats_payload",
]
