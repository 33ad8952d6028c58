"""Tests for Pydantic schemas."""

import pytest
from pydantic import ValidationError

from docqa_engine.models.schemas import (
    Citation,
    DebugInfo,
    QueryRequest,
    QueryResponse,
    RequestFilters,
)


def test_query_request_defaults():
    req = QueryRequest(question="What is the total?", org_id="o1")
    assert req.scope == "org"
    assert req.strict_citations is False
    assert req.conversation == []
    assert req.focus_doc_ids == []
    assert req.filters is None


def test_query_request_invalid_scope():
    with pytest.raises(ValidationError):
        QueryRequest(question="test", org_id="o1", scope="workspace")


def test_request_filters_parse_dates():
    filters = RequestFilters(type="invoice", date_start="2024-09-01")
    assert filters.date_start.month == 9
    assert filters.date_end is None


def test_query_response_serialization():
    resp = QueryResponse(
        answer="The total is 1,200.00.",
        citations=[Citation(doc_id="d1", doc_name="Invoice", snippet="Total 1,200.00", page=1)],
        confidence=0.85,
        coverage=1.0,
        decision="answer",
        intent="ContentQA",
        reasons=[],
        debug=DebugInfo(
            trace_id="abc123",
            latency_ms=150.5,
            routing_source="llm",
            routing_confidence=0.6,
        ),
    )
    data = resp.model_dump()
    assert data["answer"] == "The total is 1,200.00."
    assert data["citations"][0]["page"] == 1
    assert data["debug"]["documents_considered"] == 0


def test_query_response_invalid_decision():
    with pytest.raises(ValidationError):
        QueryResponse(
            answer="x",
            citations=[],
            confidence=0.0,
            coverage=0.0,
            decision="maybe",
            intent="ContentQA",
            reasons=[],
            debug=DebugInfo(trace_id="t", latency_ms=1.0, routing_source="llm", routing_confidence=0.5),
        )
