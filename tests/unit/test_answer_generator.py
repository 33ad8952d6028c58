"""Tests for per-document grounded answering."""

from __future__ import annotations

import pytest

from conftest import echo_first_snippet
from docqa_engine.config.constants import DEGRADED_HEADER, INSUFFICIENT_EVIDENCE
from docqa_engine.exceptions import ProviderCallError
from docqa_engine.generation.answer_generator import (
    AnswerGenerator,
    admits_insufficient,
    degraded_excerpts,
)
from docqa_engine.models.domain import Chunk, DocumentEvidence
from docqa_engine.scoring.confidence import ConfidenceScorer
from docqa_engine.scoring.coverage import CoverageChecker


@pytest.fixture
def generator(client, settings):
    return AnswerGenerator(client, CoverageChecker(settings), ConfidenceScorer(settings), settings)


@pytest.fixture
def evidence(documents, chunks):
    return DocumentEvidence(document=documents[0], chunks=[c for c in chunks if c.doc_id == "d1"])


def test_admits_insufficient():
    assert admits_insufficient(INSUFFICIENT_EVIDENCE)
    assert admits_insufficient("Sorry, I don’t have enough information in this document to answer that.")
    assert not admits_insufficient("The total is 1,200.00.")


def test_degraded_excerpts_are_truncated():
    chunks = [Chunk(doc_id="d", content="x" * 500) for _ in range(4)]
    text = degraded_excerpts(chunks, limit=3, max_chars=240)
    assert text.startswith(DEGRADED_HEADER)
    assert text.count("\n\n(") == 3
    assert "x" * 241 not in text


async def test_grounded_answer(generator, provider, evidence):
    provider.responses = [echo_first_snippet]
    answer = await generator.answer_document("what is the total amount due", evidence)
    assert answer.status == "answer"
    assert answer.answer.startswith("Invoice INV-9")
    assert answer.coverage == 1.0
    assert answer.avg_similarity == pytest.approx(0.71)
    assert answer.confidence == pytest.approx(0.855)
    assert [c.page for c in answer.citations] == [1, 2]
    assert answer.citations[0].doc_name == "Acme Invoice September"


async def test_prompt_carries_title_and_sentinel(generator, provider, evidence):
    await generator.answer_document("what is the total amount due", evidence)
    prompt = provider.calls[0]
    assert "Document: Acme Invoice September" in prompt
    assert INSUFFICIENT_EVIDENCE in prompt


async def test_structured_mode_prompt(generator, provider, evidence):
    await generator.answer_document("verify the total", evidence, mode="VerifySum")
    assert "Task (VerifySum)" in provider.calls[0]


async def test_sentinel_marks_insufficient(generator, provider, evidence):
    provider.responses = [INSUFFICIENT_EVIDENCE]
    answer = await generator.answer_document("who signed it", evidence)
    assert answer.status == "insufficient"
    assert not answer.usable
    assert answer.coverage == 0.0


async def test_empty_answer_marks_insufficient(generator, provider, evidence):
    provider.responses = ["   "]
    answer = await generator.answer_document("who signed it", evidence)
    assert answer.status == "insufficient"


async def test_no_chunks_is_insufficient(generator, provider, documents):
    answer = await generator.answer_document("anything", DocumentEvidence(documents[0], []))
    assert answer.status == "insufficient"
    assert answer.citations == []
    assert provider.calls == []


async def test_reasoning_failure_degrades_to_excerpts(generator, provider, evidence):
    provider.default = ProviderCallError("bad request", status_code=400)
    answer = await generator.answer_document("what is the total amount due", evidence)
    assert answer.status == "degraded"
    assert answer.usable
    assert answer.answer.startswith(DEGRADED_HEADER)
    assert "(1) Invoice INV-9" in answer.answer
    assert answer.coverage > 0.0
