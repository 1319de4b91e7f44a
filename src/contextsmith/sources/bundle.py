"""Re-ingest a JSON bundle written by ``--format json`` as detached candidates."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from contextsmith.domain.models import Candidate, OriginKind, origin_from_reason_text
from contextsmith.errors import NotFoundError, ParseError
from contextsmith.kernel.slicer import split_lines

if TYPE_CHECKING:
    from collections.abc import Mapping

PathLike = str | os.PathLike[str]


@dataclass(frozen=True, slots=True)
class LoadedBundle:
    summary: str
    candidates: tuple[Candidate, ...]
    section_count: int

    @property
    def file_paths(self) -> frozenset[str]:
        return frozenset(candidate.file_path for candidate in self.candidates)


def load_bundle(path: PathLike) -> LoadedBundle:
    bundle_path = Path(path)
    if not bundle_path.is_file():
        raise NotFoundError(str(bundle_path), what="bundle")
    try:
        text = bundle_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(str(bundle_path), f"not valid UTF-8: {exc}") from exc
    return parse_bundle(text, source=str(bundle_path))


def parse_bundle(text: str, *, source: str = "<bundle>") -> LoadedBundle:
    """Parse bundle JSON; every section becomes one candidate per origin it lists."""

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(source, f"invalid JSON bundle ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(payload, dict):
        raise ParseError(source, "bundle root must be a JSON object")

    sections = payload.get("sections")
    if not isinstance(sections, list):
        raise ParseError(source, "bundle.sections must be a list")
    summary = payload.get("summary", "")
    if not isinstance(summary, str):
        raise ParseError(source, "bundle.summary must be a string")

    candidates: list[Candidate] = []
    for index, section in enumerate(sections):
        where = f"bundle.sections[{index}]"
        if not isinstance(section, dict):
            raise ParseError(source, f"{where} must be an object")
        try:
            candidates.extend(_section_candidates(section))
        except (ValueError, TypeError) as exc:
            raise ParseError(source, f"{where}: {exc}") from exc

    return LoadedBundle(
        summary=summary,
        candidates=tuple(candidates),
        section_count=len(sections),
    )


def _section_candidates(section: Mapping[str, Any]) -> list[Candidate]:
    file_path = section.get("file_path")
    content = section.get("content")
    if not isinstance(file_path, str) or not file_path:
        raise ValueError("file_path must be a non-empty string")
    if not isinstance(content, str):
        raise ValueError("content must be a string")

    start_line = section.get("start_line")
    end_line = section.get("end_line")
    if start_line is None and end_line is None:
        start_line = 1
        end_line = max(len(split_lines(content)), 1)
    elif not _is_int(start_line) or not _is_int(end_line):
        raise ValueError("start_line and end_line must be integers")

    reason = section.get("reason", "")
    if not isinstance(reason, str):
        raise ValueError("reason must be a string")

    return [
        Candidate(
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            origin_kind=kind,
            raw_text=content,
        )
        for kind in _origins_for_reason(reason)
    ]


def _origins_for_reason(reason: str) -> tuple[OriginKind, ...]:
    tokens = [token for token in (part.strip() for part in reason.split(",")) if token]
    if not tokens:
        return (OriginKind.EXPLICIT_FILE,)
    kinds = {origin_from_reason_text(token) for token in tokens}
    return tuple(sorted(kinds, key=lambda kind: kind.priority))


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


__all__ = ["LoadedBundle", "load_bundle", "parse_bundle"]
