"""
contextsmith — domain types

File: src/contextsmith/domain/__init__.py
Last updated: 2026-10-18

Purpose
- Domain types shared by the kernel and its collaborators: Candidate, Snippet, Score, Decision.

Functional requirements
- Domain layer stays free of IO side effects.
"""

from contextsmith.domain.models import (
    Candidate,
    Decision,
    OriginKind,
    ReasonCode,
    Score,
    SelectedBy,
    Signal,
    SignalVector,
    Snippet,
    SnippetKey,
    normalize_relative_path,
    ordered_reason_codes,
    origin_from_reason_text,
)

__all__ = [
    "Candidate",
    "Decision",
    "OriginKind",
    "ReasonCode",
    "Score",
    "SelectedBy",
    "Signal",
    "SignalVector",
    "Snippet",
    "SnippetKey",
    "normalize_relative_path",
    "ordered_reason_codes",
    "origin_from_reason_text",
]
