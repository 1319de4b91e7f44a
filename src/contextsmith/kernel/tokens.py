"""
contextsmith — token estimation policy

File: src/contextsmith/kernel/tokens.py
Last updated: 2026-10-18

Purpose
- Pluggable token estimation consumed by the packer.
- Character-ratio heuristic per model family; a real tokenizer can implement the same protocol.

Functional requirements
- Empty text costs zero tokens; non-empty text costs at least one.
- Estimates are pure functions of (text, model family).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Final, Protocol


class ModelFamily(StrEnum):
    GPT4 = "gpt-4"
    GPT35 = "gpt-3.5-turbo"
    CLAUDE = "claude"
    UNKNOWN = "unknown"

    @property
    def chars_per_token(self) -> float:
        return _CHARS_PER_TOKEN[self]


_CHARS_PER_TOKEN: Final[dict[ModelFamily, float]] = {
    ModelFamily.GPT4: 4.0,
    ModelFamily.GPT35: 4.0,
    ModelFamily.CLAUDE: 3.5,
    ModelFamily.UNKNOWN: 4.0,
}

DEFAULT_MODEL_FAMILY: Final[ModelFamily] = ModelFamily.GPT4


class TokenEstimator(Protocol):
    """Estimates the token cost of ``text`` for ``model_family``."""

    def estimate(self, text: str, model_family: ModelFamily) -> int: ...


@dataclass(frozen=True, slots=True)
class CharRatioEstimator:
    """Deterministic ``ceil(chars / ratio)`` estimator."""

    ratio_override: float | None = None

    def __post_init__(self) -> None:
        if self.ratio_override is not None and (
            not math.isfinite(self.ratio_override) or self.ratio_override <= 0
        ):
            raise ValueError("ratio_override must be a finite number > 0")

    def estimate(self, text: str, model_family: ModelFamily) -> int:
        if not isinstance(text, str):
            raise TypeError("CharRatioEstimator.estimate expects a string")
        if not text:
            return 0
        ratio = (
            self.ratio_override
            if self.ratio_override is not None
            else ModelFamily(model_family).chars_per_token
        )
        return max(1, math.ceil(len(text) / ratio))

    def budget_for_chars(self, chars: int, model_family: ModelFamily) -> int:
        """Token budget equivalent to ``chars`` characters of text."""

        if chars < 0:
            raise ValueError("chars must be >= 0")
        return self.estimate("x" * chars, model_family)


def parse_model(name: str | None) -> ModelFamily:
    """Map a free-form model name onto a :class:`ModelFamily` by substring."""

    if name is None:
        return DEFAULT_MODEL_FAMILY
    lowered = name.strip().lower()
    if not lowered:
        return DEFAULT_MODEL_FAMILY
    if "claude" in lowered:
        return ModelFamily.CLAUDE
    if "gpt-4" in lowered or "gpt4" in lowered:
        return ModelFamily.GPT4
    if "gpt-3" in lowered or "gpt3" in lowered:
        return ModelFamily.GPT35
    return ModelFamily.UNKNOWN


__all__ = [
    "DEFAULT_MODEL_FAMILY",
    "CharRatioEstimator",
    "ModelFamily",
    "TokenEstimator",
    "parse_model",
]
