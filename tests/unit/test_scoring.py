"""Tests for coverage and confidence scoring."""

from __future__ import annotations

import pytest

from docqa_engine.config.settings import Settings
from docqa_engine.scoring.confidence import ConfidenceScorer
from docqa_engine.scoring.coverage import (
    CoverageChecker,
    coverage_tokens,
    overlap_score,
    split_sentences,
)


def test_coverage_tokens():
    assert coverage_tokens("The total is 1,200.00 USD!") == {"the", "total", "200", "usd"}


def test_split_sentences():
    assert split_sentences("First one. Second one? Third!") == ["First one.", "Second one?", "Third!"]
    assert split_sentences("no terminal punctuation") == ["no terminal punctuation"]
    assert split_sentences("   ") == []


def test_overlap_score():
    assert overlap_score({"a1x", "b2y"}, {"a1x", "b2y", "c3z", "d4w"}) == 0.5
    assert overlap_score(set(), {"a1x"}) == 0.0


def test_coverage_counts_supported_sentences(settings):
    checker = CoverageChecker(settings)
    snippets = ["The plant was inspected on 2 August and found compliant with consent conditions."]
    answer = "The plant was found compliant with consent conditions. Penguins cannot fly."
    assert checker.coverage(answer, snippets) == 0.5


def test_coverage_without_snippets_is_zero(settings):
    checker = CoverageChecker(settings)
    assert checker.coverage("Anything at all.", []) == 0.0
    assert checker.coverage("", ["snippet text"]) == 0.0


def test_confidence_formula(settings):
    scorer = ConfidenceScorer(settings)
    assert scorer.score(1.0, 0.8) == pytest.approx(0.9)
    assert scorer.score(0.0, 0.0) == 0.0
    # similarity is capped at 1
    assert scorer.score(1.0, 3.0) == 1.0


def test_confidence_weights_from_settings():
    settings = Settings(
        openai_api_key="x", google_api_key="x", conf_coverage_weight=0.8, conf_similarity_weight=0.2
    )
    assert ConfidenceScorer(settings).score(0.5, 0.5) == pytest.approx(0.5)
    assert ConfidenceScorer(settings).score(1.0, 0.0) == pytest.approx(0.8)


def test_mean():
    assert ConfidenceScorer.mean([0.2, 0.4]) == pytest.approx(0.3)
    assert ConfidenceScorer.mean([]) == 0.0
