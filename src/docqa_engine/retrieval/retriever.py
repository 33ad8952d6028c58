"""Scoped retrieval over the datastore collaborators.

Vector search needs a query embedding; when the embedder is unavailable the
retriever falls back to a lexical keyword sweep over the same documents.
"""

from __future__ import annotations

from collections import defaultdict

from docqa_engine.config.settings import Settings
from docqa_engine.exceptions import RetrievalError
from docqa_engine.models.domain import (
    Chunk,
    Document,
    DocumentEvidence,
    MetadataFilters,
    QueryPlan,
)
from docqa_engine.models.schemas import RequestFilters
from docqa_engine.observability.logger import get_logger
from docqa_engine.protocols.datastore import ChunkIndex, MetadataStore
from docqa_engine.protocols.embedder import Embedder
from docqa_engine.query.understanding import keywords
from docqa_engine.retrieval.ranker import HybridRanker

logger = get_logger("retriever")


def metadata_filters(
    plan: QueryPlan,
    allowed: list[str] | None,
    caller_filters: RequestFilters | None = None,
) -> MetadataFilters:
    return MetadataFilters(
        sender=plan.sender,
        receiver=plan.receiver,
        category=caller_filters.category if caller_filters else None,
        doc_type=caller_filters.type if caller_filters else None,
        date_start=plan.date_range.start if plan.date_range else None,
        date_end=plan.date_range.end if plan.date_range else None,
        allowed_ids=frozenset(allowed) if allowed is not None else None,
    )


class ScopedRetriever:
    def __init__(
        self,
        metadata_store: MetadataStore,
        chunk_index: ChunkIndex,
        embedder: Embedder,
        ranker: HybridRanker,
        settings: Settings,
    ) -> None:
        self._metadata = metadata_store
        self._chunks = chunk_index
        self._embedder = embedder
        self._ranker = ranker
        self._settings = settings

    async def search_documents(
        self, org_id: str, filters: MetadataFilters, limit: int | None = None
    ) -> list[Document]:
        try:
            return await self._metadata.search(org_id, filters, limit or self._settings.metadata_search_limit)
        except Exception as e:
            raise RetrievalError(f"Metadata search failed: {e}") from e

    async def documents_in_scope(
        self, org_id: str, allowed: list[str] | None, limit: int | None = None
    ) -> list[Document]:
        return await self.search_documents(
            org_id,
            MetadataFilters(allowed_ids=frozenset(allowed) if allowed is not None else None),
            limit,
        )

    async def scope_doc_ids(self, org_id: str, allowed: list[str] | None) -> list[str]:
        if allowed is not None:
            return allowed
        return [d.id for d in await self.documents_in_scope(org_id, None)]

    async def vector_chunks(
        self,
        org_id: str,
        question: str,
        allowed: list[str] | None,
        match_count: int | None = None,
        threshold: float | None = None,
    ) -> list[Chunk]:
        """Nearest chunks restricted to ``allowed``; empty when no embedding."""
        embedding = await self._embedder.embed(question)
        if embedding is None:
            logger.info("embedding_unavailable")
            return []
        try:
            rows = await self._chunks.match_chunks(
                org_id,
                embedding,
                match_count or self._settings.vector_match_count,
                self._settings.vector_similarity_threshold if threshold is None else threshold,
            )
        except Exception as e:
            raise RetrievalError(f"Vector search failed: {e}") from e
        if allowed is None:
            return rows
        allowed_set = set(allowed)
        return [c for c in rows if c.doc_id in allowed_set]

    async def keyword_chunks(
        self, org_id: str, doc_ids: list[str], terms: list[str], limit: int | None = None
    ) -> list[Chunk]:
        if not terms:
            return []
        try:
            return await self._chunks.keyword_chunks(
                org_id, doc_ids, terms, limit or self._settings.keyword_sweep_limit
            )
        except Exception as e:
            raise RetrievalError(f"Keyword sweep failed: {e}") from e

    async def chunks_for_question(
        self, org_id: str, question: str, allowed: list[str] | None, plan: QueryPlan | None = None
    ) -> tuple[list[Chunk], bool]:
        """Vector chunks, else a lexical sweep. Returns (chunks, used_lexical)."""
        chunks = await self.vector_chunks(org_id, question, allowed)
        if chunks:
            return chunks, False
        terms = sorted(plan.terms) if plan and plan.terms else keywords(question, limit=10)
        doc_ids = await self.scope_doc_ids(org_id, allowed)
        chunks = await self.keyword_chunks(org_id, doc_ids, terms)
        logger.info("lexical_fallback", chunks=len(chunks))
        return chunks, True

    def build_evidence(
        self, documents: list[Document], chunks: list[Chunk]
    ) -> list[DocumentEvidence]:
        """Per-document MMR evidence sets, in the order of ``documents``."""
        by_doc: dict[str, list[Chunk]] = defaultdict(list)
        for chunk in chunks:
            by_doc[chunk.doc_id].append(chunk)
        evidence = []
        for document in documents:
            pool = sorted(by_doc.get(document.id, []), key=lambda c: -(c.similarity or 0.0))
            pool = pool[: self._settings.doc_chunk_pool]
            evidence.append(
                DocumentEvidence(document=document, chunks=self._ranker.select_evidence(pool))
            )
        return evidence
