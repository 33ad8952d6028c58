"""End-to-end query engine tests over the in-memory store."""

from __future__ import annotations

import pytest

from conftest import FakeEmbedder, InMemoryStore, echo_first_snippet, no_sleep
from docqa_engine.config.constants import (
    DEGRADED_HEADER,
    MERGED_HEADER,
    MERGED_ORG_HEADER,
    STRICT_CLARIFY_MESSAGE,
)
from docqa_engine.exceptions import MalformedOutput, ProviderCallError
from docqa_engine.factory import build_engine
from docqa_engine.models.schemas import QueryRequest
from docqa_engine.verticals.registry import VERTICALS


class FailingStore(InMemoryStore):
    async def search(self, org_id, filters, limit=None):
        raise ConnectionError("connection reset")

    async def match_chunks(self, org_id, query_embedding, match_count, similarity_threshold):
        raise ConnectionError("connection reset")


@pytest.fixture
def engine(settings, store, provider, rate_limiter):
    provider.default = echo_first_snippet
    return build_engine(
        settings,
        store,
        store,
        store,
        embedder=FakeEmbedder(),
        primary=provider,
        rate_limiter=rate_limiter,
        sleep=no_sleep,
    )


def _request(question: str, **kwargs) -> QueryRequest:
    return QueryRequest(question=question, org_id="o1", **kwargs)


async def test_short_question_asks_for_detail(engine, provider):
    response = await engine.execute(_request("hi"))
    assert response.decision == "clarify"
    assert response.intent == "Clarify"
    assert response.reasons == ["CLARIFY_SHORT_QUESTION"]
    assert provider.calls == []
    assert provider.structured_calls == []


async def test_list_applies_extracted_date_filter(engine, provider):
    provider.structured = {"FilterOutput": {"date": "2024-09"}}

    response = await engine.execute(_request("list all invoices"))

    assert response.intent == "ListDocs"
    assert response.decision == "answer"
    assert response.answer.startswith("### Documents (1)")
    assert "**Acme Invoice September** (2024-09-12, invoice, from Acme Corp)" in response.answer
    assert [c.doc_id for c in response.citations] == ["d1"]
    assert response.coverage == 1.0
    span_names = [s["name"] for s in response.debug.spans]
    assert span_names == ["routing", "scope", "planning", "execution"]
    assert response.debug.routing_source == "deterministic"


async def test_folder_document_count(engine, provider):
    response = await engine.execute(
        _request("how many documents are in here", scope="folder", folder_id="f1")
    )
    assert response.intent == "DocCount"
    assert response.answer == "This folder contains **2** documents."
    assert response.debug.documents_considered == 2
    assert provider.calls == []


async def test_entity_count_is_cited(engine):
    response = await engine.execute(_request("how many accused persons were named"))
    assert response.intent == "FieldExtract"
    assert "Individuals accused: **3**" in response.answer
    assert [c.doc_name for c in response.citations] == ["FIR Record"]
    assert response.citations[0].page == 2


async def test_labeled_fields(engine):
    response = await engine.execute(_request("what is the fir number and complainant name"))
    assert response.intent == "FieldExtract"
    assert "- FIR Number: **123/2023**" in response.answer
    assert "- Complainant: **Ramesh Kumar**" in response.answer
    assert response.citations[0].doc_id == "d3"


async def test_compare_merges_two_documents(engine):
    response = await engine.execute(_request("compare the invoice with the inspection report"))
    assert response.intent == "Compare"
    assert response.answer.startswith(MERGED_ORG_HEADER)
    assert "MULTI_DOCUMENT_MERGE" in response.reasons
    assert len({c.doc_id for c in response.citations}) == 2


async def test_linked_documents_for_open_document(engine):
    response = await engine.execute(
        _request("what is related to this", scope="doc", doc_id="d1")
    )
    assert response.intent == "Linked"
    assert response.answer.startswith("### Linked documents")
    assert "Site Inspection Report" in response.answer
    assert "Acme Invoice September" not in response.answer


async def test_content_qa_single_document(engine, provider):
    response = await engine.execute(
        _request("what are the payment terms", scope="doc", doc_id="d1")
    )
    assert response.intent == "ContentQA"
    assert response.decision == "answer"
    assert response.debug.routing_source == "llm"
    assert response.coverage == 1.0
    assert {c.doc_id for c in response.citations} == {"d1"}
    assert provider.structured_calls[0] == "RouterOutput"


async def test_strict_citations_with_ungrounded_answer(engine, provider):
    provider.default = "Penguins cannot fly."
    response = await engine.execute(
        _request("what are the payment terms", scope="doc", doc_id="d1", strict_citations=True)
    )
    assert response.decision == "clarify"
    assert response.answer == STRICT_CLARIFY_MESSAGE
    assert response.citations == []
    assert "STRICT_CITATIONS_UNMET" in response.reasons


async def test_store_failure_is_not_found(settings, documents, chunks, provider, rate_limiter):
    store = FailingStore(documents, chunks)
    engine = build_engine(
        settings, store, store, store,
        embedder=FakeEmbedder(), primary=provider, rate_limiter=rate_limiter, sleep=no_sleep,
    )
    response = await engine.execute(_request("list all invoices"))
    assert response.decision == "not_found"
    assert response.reasons == ["RETRIEVAL_FAILED"]


async def test_reasoning_outage_returns_excerpts(engine, provider):
    outage = ProviderCallError("invalid request", status_code=400)
    provider.default = outage
    provider.structured = {"RouterOutput": outage, "DocIntentOutput": outage}

    response = await engine.execute(
        _request("what are the payment terms", scope="doc", doc_id="d1")
    )

    assert response.decision == "degraded"
    assert response.answer.startswith(DEGRADED_HEADER)
    assert response.reasons[0] == "ROUTED_BY_DEFAULT"
    assert "REASONING_DEGRADED" in response.reasons
    assert response.citations


async def test_vertical_without_matching_documents(engine):
    response = await engine.execute(_request("list all invoices", vertical="resume"))
    assert response.decision == "not_found"
    assert response.answer == VERTICALS["resume"].fallback_message
    assert response.reasons == ["VERTICAL_FILTER_EMPTY"]


async def test_vertical_applies_to_content_questions(engine, provider):
    response = await engine.execute(
        _request("what does the inspection say about consent", vertical="resume")
    )
    assert response.intent == "ContentQA"
    assert response.decision == "not_found"
    assert response.answer == VERTICALS["resume"].fallback_message
    assert response.reasons == ["VERTICAL_FILTER_EMPTY"]
    assert provider.calls == []


async def test_vertical_narrows_content_evidence(engine):
    response = await engine.execute(_request("what are the payment terms", vertical="financial"))
    assert response.intent == "ContentQA"
    assert response.decision == "answer"
    assert {c.doc_id for c in response.citations} == {"d1"}
    assert "vertical" in [s["name"] for s in response.debug.spans]


async def test_vertical_applies_to_field_questions(engine):
    response = await engine.execute(
        _request("what is the fir number and complainant name", vertical="compliance")
    )
    assert response.intent == "FieldExtract"
    assert "123/2023" not in response.answer
    assert response.reasons[0] == "CONTENT_QA_FALLBACK"
    assert {c.doc_id for c in response.citations} == {"d2"}


async def test_folder_default_when_router_output_is_malformed(engine, provider):
    provider.structured = {"RouterOutput": MalformedOutput("not json")}

    response = await engine.execute(
        _request("what happened during the visit", scope="folder", folder_id="f1")
    )

    assert response.intent == "FolderQA"
    assert response.debug.routing_source == "default"
    assert response.answer.startswith(MERGED_HEADER)
    assert response.reasons[:2] == ["ROUTED_BY_DEFAULT", "MULTI_DOCUMENT_MERGE"]


async def test_empty_folder_is_not_found(engine):
    response = await engine.execute(
        _request("what does the contract say", scope="folder", folder_id="missing")
    )
    assert response.decision == "not_found"
    assert "NO_DOCUMENTS_IN_SCOPE" in response.reasons
