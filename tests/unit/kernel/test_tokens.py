"""Unit tests for token estimation."""

from __future__ import annotations

import pytest

from contextsmith.kernel.tokens import (
    DEFAULT_MODEL_FAMILY,
    CharRatioEstimator,
    ModelFamily,
    parse_model,
)


@pytest.mark.unit
def test_empty_text_costs_zero_tokens() -> None:
    assert CharRatioEstimator().estimate("", ModelFamily.GPT4) == 0


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "family", "expected"),
    [
        ("a", ModelFamily.GPT4, 1),
        ("abcd", ModelFamily.GPT4, 1),
        ("abcde", ModelFamily.GPT4, 2),
        ("abcdefg", ModelFamily.CLAUDE, 2),
        ("abcdefgh", ModelFamily.CLAUDE, 3),
    ],
)
def test_char_ratio_estimate_rounds_up(text: str, family: ModelFamily, expected: int) -> None:
    assert CharRatioEstimator().estimate(text, family) == expected


@pytest.mark.unit
def test_ratio_override_applies_to_every_family() -> None:
    estimator = CharRatioEstimator(ratio_override=1.0)

    assert estimator.estimate("abc", ModelFamily.CLAUDE) == 3
    assert estimator.estimate("abc", ModelFamily.GPT35) == 3


@pytest.mark.unit
@pytest.mark.parametrize("ratio", [0.0, -1.0, float("inf")])
def test_ratio_override_must_be_positive_and_finite(ratio: float) -> None:
    with pytest.raises(ValueError):
        CharRatioEstimator(ratio_override=ratio)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("name", "expected"),
    [
        (None, DEFAULT_MODEL_FAMILY),
        ("", DEFAULT_MODEL_FAMILY),
        ("gpt-4o", ModelFamily.GPT4),
        ("GPT4-turbo", ModelFamily.GPT4),
        ("gpt-3.5-turbo", ModelFamily.GPT35),
        ("claude-3-opus", ModelFamily.CLAUDE),
        ("llama", ModelFamily.UNKNOWN),
    ],
)
def test_parse_model(name: str | None, expected: ModelFamily) -> None:
    assert parse_model(name) is expected


@pytest.mark.unit
def test_budget_for_chars_uses_the_model_ratio() -> None:
    estimator = CharRatioEstimator()

    assert estimator.budget_for_chars(0, ModelFamily.GPT4) == 0
    assert estimator.budget_for_chars(40, ModelFamily.GPT4) == 10
    assert estimator.budget_for_chars(41, ModelFamily.GPT4) == 11
    assert estimator.budget_for_chars(7, ModelFamily.CLAUDE) == 2
    with pytest.raises(ValueError):
        estimator.budget_for_chars(-1, ModelFamily.GPT4)
