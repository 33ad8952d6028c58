"""Hybrid lexical + metadata ranking with recency, and MMR diversity selection."""

from __future__ import annotations

import math
from datetime import date

from docqa_engine.config.settings import Settings
from docqa_engine.models.domain import CandidateDocument, Chunk, Document, QueryPlan

# Field weights for term hits
TITLE_WEIGHT = 3.5
CONTENT_WEIGHT = 1.5
SENDER_WEIGHT = 1.2
RECEIVER_WEIGHT = 1.0
CATEGORY_WEIGHT = 1.0
TAGS_WEIGHT = 0.8

# Per matched entity
PERSON_BOOST = 2.0
ORGANIZATION_BOOST = 1.5
EMAIL_BOOST = 2.0
CATEGORY_BOOST = 1.2

MAX_RECENCY = 1.5


def _norm(value: str | None) -> str:
    return (value or "").lower()


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(needle) and needle.lower() in _norm(haystack)


def similarity_from_score(score: float) -> float:
    """Smoothed similarity in [0, 1), non-decreasing in score."""
    return 1.0 - 1.0 / (1.0 + max(0.0, score))


def recency_boost(doc_date: date | None, today: date) -> float:
    if doc_date is None:
        return 0.0
    age_days = max(0, (today - doc_date).days)
    return max(0.0, MAX_RECENCY - math.log1p(age_days) / 2)


def passes_filters(document: Document, plan: QueryPlan) -> bool:
    """Hard excludes: sender, receiver, category and date range."""
    if plan.sender and not _contains(document.sender, plan.sender):
        return False
    if plan.receiver and not _contains(document.receiver, plan.receiver):
        return False
    if plan.category_filters and not any(
        _contains(document.category, c) for c in plan.category_filters
    ):
        return False
    if plan.date_range is not None:
        if document.date is None or not plan.date_range.contains(document.date):
            return False
    return True


def _term_hits(text: str | None, terms: list[str]) -> int:
    low = _norm(text)
    if not low:
        return 0
    return sum(low.count(t) for t in terms)


def score(document: Document, plan: QueryPlan, today: date | None = None) -> float:
    """Accumulated match score, always >= 0."""
    today = today or date.today()
    terms = sorted({t.lower() for t in plan.terms | plan.boost_terms if t})

    total = 0.0
    if terms:
        total += _term_hits(document.title, terms) * TITLE_WEIGHT
        total += _term_hits(document.content, terms) * CONTENT_WEIGHT
        total += _term_hits(document.sender, terms) * SENDER_WEIGHT
        total += _term_hits(document.receiver, terms) * RECEIVER_WEIGHT
        total += _term_hits(document.category, terms) * CATEGORY_WEIGHT
        total += _term_hits(" ".join(document.tags), terms) * TAGS_WEIGHT

    for entity in plan.entities:
        value = entity.value
        if entity.type == "person":
            if any(
                _contains(field, value)
                for field in (document.title, document.content, document.sender, document.receiver)
            ):
                total += PERSON_BOOST
        elif entity.type == "organization":
            if _contains(document.title, value) or _contains(document.content, value):
                total += ORGANIZATION_BOOST
        elif entity.type == "email":
            if any(
                _contains(field, value)
                for field in (document.sender, document.receiver, document.content)
            ):
                total += EMAIL_BOOST
        elif entity.type == "category":
            if _contains(document.category, value):
                total += CATEGORY_BOOST

    # type filters boost matching documents instead of excluding others
    for doc_type in plan.type_filters:
        if _contains(document.doc_type, doc_type) or _contains(document.category, doc_type):
            total += CATEGORY_BOOST

    total += recency_boost(document.date, today)
    return max(0.0, total)


def _sort_key(candidate: CandidateDocument) -> tuple:
    doc_date = candidate.document.date
    return (
        -candidate.similarity,
        -(doc_date.toordinal() if doc_date else 0),
        candidate.document.id,
    )


def rank(
    documents: list[Document],
    plan: QueryPlan,
    limit: int | None = None,
    today: date | None = None,
) -> list[CandidateDocument]:
    """Filter, score and order: similarity desc, newer date first, then id."""
    today = today or date.today()
    candidates = []
    for document in documents:
        if not passes_filters(document, plan):
            continue
        s = score(document, plan, today)
        candidates.append(
            CandidateDocument(document=document, score=s, similarity=similarity_from_score(s))
        )
    candidates.sort(key=_sort_key)
    return candidates[:limit] if limit else candidates


def chunk_similarity(a: Chunk, b: Chunk, prefix_tokens: int = 60) -> float:
    """Token-set overlap of the first ``prefix_tokens`` whitespace tokens."""
    set_a = set(a.content.lower().split()[:prefix_tokens])
    set_b = set(b.content.lower().split()[:prefix_tokens])
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / max(len(set_a), len(set_b))


def mmr_select(
    chunks: list[Chunk],
    k: int = 6,
    lambda_: float = 0.7,
    prefix_tokens: int = 60,
) -> list[Chunk]:
    """Maximal Marginal Relevance over a pool sorted by similarity.

    Picks the chunk maximizing ``lambda*relevance - (1-lambda)*max_sim_to_selected``
    until k are chosen or the pool is exhausted.
    """
    pool = sorted(chunks, key=lambda c: -(c.similarity or 0.0))
    selected: list[Chunk] = []
    while pool and len(selected) < k:
        best_index = 0
        best_value = -math.inf
        for i, candidate in enumerate(pool):
            redundancy = max(
                (chunk_similarity(candidate, s, prefix_tokens) for s in selected),
                default=0.0,
            )
            value = lambda_ * (candidate.similarity or 0.0) - (1 - lambda_) * redundancy
            if value > best_value:
                best_value = value
                best_index = i
        selected.append(pool.pop(best_index))
    return selected


def shortlist_by_chunks(
    chunks: list[Chunk],
    top_chunks: int = 5,
    focus_ids: tuple[str, ...] = (),
    focus_boost: float = 0.1,
    limit: int = 3,
) -> list[str]:
    """Document ids ordered by the mean of their best chunk similarities.

    Focus documents get ``focus_boost`` added; ties break on id.
    """
    by_doc: dict[str, list[float]] = {}
    for chunk in chunks:
        by_doc.setdefault(chunk.doc_id, []).append(chunk.similarity or 0.0)
    scored = []
    for doc_id, sims in by_doc.items():
        best = sorted(sims, reverse=True)[:top_chunks]
        value = sum(best) / len(best)
        if doc_id in focus_ids:
            value += focus_boost
        scored.append((-value, doc_id))
    scored.sort()
    return [doc_id for _, doc_id in scored[:limit]]


class HybridRanker:
    """Settings-bound facade over the ranking functions."""

    def __init__(self, settings: Settings) -> None:
        self._k = settings.mmr_k
        self._lambda = settings.mmr_lambda
        self._prefix = settings.mmr_prefix_tokens
        self._top_chunks = settings.shortlist_top_chunks
        self._focus_boost = settings.focus_boost
        self._max_docs = settings.max_answer_docs

    def score(self, document: Document, plan: QueryPlan, today: date | None = None) -> float:
        return score(document, plan, today)

    def rank(
        self,
        documents: list[Document],
        plan: QueryPlan,
        limit: int | None = None,
        today: date | None = None,
    ) -> list[CandidateDocument]:
        return rank(documents, plan, limit, today)

    def select_evidence(self, chunks: list[Chunk], k: int | None = None) -> list[Chunk]:
        return mmr_select(chunks, k or self._k, self._lambda, self._prefix)

    def shortlist(self, chunks: list[Chunk], focus_ids: tuple[str, ...] = ()) -> list[str]:
        return shortlist_by_chunks(
            chunks, self._top_chunks, focus_ids, self._focus_boost, self._max_docs
        )
