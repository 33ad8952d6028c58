"""Shared test fixtures."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import BaseModel

from docqa_engine.config.settings import Settings
from docqa_engine.models.domain import Chunk, Document, DocumentLink, MetadataFilters
from docqa_engine.reasoning.client import ReasoningClient
from docqa_engine.reasoning.rate_limiter import RateLimiter


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider:
    """LLM provider double.

    ``responses`` is a queue for ``generate``: strings are returned, exceptions
    raised and callables invoked with the prompt. An empty queue falls back to
    ``default``. ``structured`` maps a schema class name to an instance, a dict,
    an exception or a list used as a queue of those; unknown schemas get the
    schema's defaults.
    """

    def __init__(self, name="gemini", responses=None, structured=None, default="ok") -> None:
        self.name = name
        self.responses = list(responses or [])
        self.structured = dict(structured or {})
        self.default = default
        self.calls: list[str] = []
        self.structured_calls: list[str] = []
        self.structured_prompts: list[str] = []

    async def generate(self, prompt, system=None, temperature=0.3, max_tokens=2048, model=None):
        self.calls.append(prompt)
        item = self.responses.pop(0) if self.responses else self.default
        return self._resolve(item, prompt)

    async def generate_structured(self, prompt, response_schema, system=None) -> BaseModel:
        name = response_schema.__name__
        self.structured_calls.append(name)
        self.structured_prompts.append(prompt)
        item = self.structured.get(name)
        if isinstance(item, list):
            item = item.pop(0) if item else None
        if item is None:
            return response_schema()
        if isinstance(item, dict):
            return response_schema.model_validate(item)
        return self._resolve(item, prompt)

    @staticmethod
    def _resolve(item, prompt):
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(prompt)
        return item


def echo_first_snippet(prompt: str) -> str:
    """Answers with the first evidence snippet, which is fully grounded."""
    for line in prompt.splitlines():
        if line.startswith("Snippet 1: "):
            return line[len("Snippet 1: "):]
    return "No snippets."


async def no_sleep(seconds: float) -> None:
    return None


class InMemoryStore:
    """MetadataStore, ChunkIndex and LinkStore over plain lists."""

    def __init__(self, documents, chunks, links=(), versions=None) -> None:
        self.documents = list(documents)
        self.chunks = list(chunks)
        self.links = list(links)
        self.versions = dict(versions or {})
        self.searches: list[MetadataFilters] = []

    async def search(self, org_id, filters: MetadataFilters, limit=None):
        self.searches.append(filters)
        results = []
        for d in sorted(self.documents, key=lambda d: d.id):
            if filters.allowed_ids is not None and d.id not in filters.allowed_ids:
                continue
            if filters.sender and filters.sender.lower() not in (d.sender or "").lower():
                continue
            if filters.receiver and filters.receiver.lower() not in (d.receiver or "").lower():
                continue
            if filters.category and filters.category.lower() != (d.category or "").lower():
                continue
            if filters.doc_type and filters.doc_type.lower() != (d.doc_type or "").lower():
                continue
            if filters.date_start and (d.date is None or d.date < filters.date_start):
                continue
            if filters.date_end and (d.date is None or d.date > filters.date_end):
                continue
            results.append(d)
        return results[:limit] if limit else results

    async def folder_document_ids(self, org_id, folder_id):
        return [d.id for d in self.documents if d.folder_id == folder_id]

    async def version_ids(self, org_id, doc_id):
        return list(self.versions.get(doc_id, []))

    async def match_chunks(self, org_id, query_embedding, match_count, similarity_threshold):
        rows = [c for c in self.chunks if (c.similarity or 0.0) >= similarity_threshold]
        rows.sort(key=lambda c: -(c.similarity or 0.0))
        return rows[:match_count]

    async def keyword_chunks(self, org_id, doc_ids, keywords, limit):
        wanted = set(doc_ids)
        rows = [
            c
            for c in self.chunks
            if c.doc_id in wanted and any(k.lower() in c.content.lower() for k in keywords)
        ]
        return rows[:limit]

    async def links_involving(self, org_id, doc_ids):
        ids = set(doc_ids)
        return [link for link in self.links if link.doc_id in ids or link.linked_doc_id in ids]


class FakeEmbedder:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.calls = 0

    async def embed(self, text):
        self.calls += 1
        return [0.1, 0.2, 0.3] if self.available else None


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key", google_api_key="test-key")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(settings, clock):
    return RateLimiter.from_settings(settings, clock=clock)


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def client(provider, rate_limiter, settings):
    return ReasoningClient(provider, rate_limiter, settings, sleep=no_sleep)


@pytest.fixture
def documents():
    return [
        Document(
            id="d1",
            title="Acme Invoice September",
            content="Invoice INV-9 from Acme Corp. Total amount due is 1,200.00.",
            sender="Acme Corp",
            receiver="Globex",
            category="finance",
            doc_type="invoice",
            date=date(2024, 9, 12),
            folder_id="f1",
        ),
        Document(
            id="d2",
            title="Site Inspection Report",
            content="MPCB inspection found the plant compliant with consent conditions.",
            sender="MPCB",
            category="compliance",
            doc_type="inspection",
            date=date(2024, 8, 2),
            folder_id="f1",
        ),
        Document(
            id="d3",
            title="FIR Record",
            content="FIR No. 123/2023 registered on 01/05/2023.",
            category="police",
            doc_type="legal",
            date=date(2023, 5, 1),
            folder_id="f2",
        ),
    ]


@pytest.fixture
def chunks():
    return [
        Chunk(
            doc_id="d1",
            content="Invoice INV-9 from Acme Corp. Total amount due is 1,200.00 for consulting services.",
            page=1,
            similarity=0.82,
        ),
        Chunk(
            doc_id="d1",
            content="Payment terms are net 30 days from the invoice date.",
            page=2,
            similarity=0.6,
        ),
        Chunk(
            doc_id="d2",
            content="The inspection on 2 August found the plant compliant with consent conditions.",
            page=1,
            similarity=0.75,
        ),
        Chunk(
            doc_id="d3",
            content="FIR No. 123/2023 registered on 01/05/2023. Complainant: Ramesh Kumar",
            page=1,
            similarity=0.5,
        ),
        Chunk(
            doc_id="d3",
            content="Three accused persons were named in the complaint.",
            page=2,
            similarity=0.4,
        ),
    ]


@pytest.fixture
def store(documents, chunks):
    return InMemoryStore(documents, chunks, links=[DocumentLink("d1", "d2", "related")])
