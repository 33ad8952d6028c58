"""Vertical document filters: one pure keyword filter per business vertical."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from docqa_engine.models.domain import Document

FINANCIAL_TYPES = (
    "invoice", "bill", "receipt", "payment", "budget", "financial", "statement",
    "expense", "cost", "fee", "charge", "amount", "estimate", "quotation", "proposal", "tender",
)
FINANCIAL_KEYWORDS = (
    "cost", "price", "amount", "budget", "expense", "revenue", "profit", "crore", "lakh",
    "rupees", "dollars", "currency", "financial", "total", "subtotal",
)
LEGAL_KEYWORDS = (
    "contract", "agreement", "legal", "law", "notice", "complaint", "petition", "decree",
    "order", "judgment", "settlement", "memorandum", "terms", "conditions", "policy",
    "regulation", "clause", "obligation", "liability", "breach", "termination",
)
LEGAL_ENTITIES = ("ltd", "limited", "pvt", "private", "corporation", "partnership", "trust")
RESUME_KEYWORDS = (
    "resume", "cv", "curriculum", "vitae", "profile", "candidate", "experience",
    "qualification", "education", "skill", "work history", "employment", "career",
)
COMPLIANCE_KEYWORDS = (
    "compliance", "audit", "regulation", "regulatory", "policy", "inspection", "consent",
    "pollution", "certificate", "license", "licence", "gdpr", "iso", "mpcb", "retention",
)

_AMOUNT_RE = re.compile(r"\d+[.,]\d{2}|\b\d+(?:\.\d+)?\s*(?:crore|lakh|rupees|dollars)\b", re.IGNORECASE)
_LEGAL_REF_RE = re.compile(r"\b(?:section|article|clause)\s+\d+\b|\bthis\s+agreement\b", re.IGNORECASE)
_YEAR_SPAN_RE = re.compile(r"\b\d{4}\s*[-–]\s*(?:present|\d{4})\b", re.IGNORECASE)


def _fields(doc: Document) -> tuple[str, str, str, str]:
    return (
        doc.title.lower(),
        f"{doc.doc_type or ''} {doc.category or ''}".lower(),
        doc.content.lower(),
        " ".join(doc.tags).lower(),
    )


def _any_in(words: tuple[str, ...], *texts: str) -> bool:
    return any(w in t for w in words for t in texts if t)


def is_financial(doc: Document) -> bool:
    title, kind, content, tags = _fields(doc)
    return (
        _any_in(FINANCIAL_TYPES, kind)
        or _any_in(FINANCIAL_TYPES + FINANCIAL_KEYWORDS, tags)
        or _any_in(FINANCIAL_KEYWORDS, title)
        or "₹" in content
        or "$" in content
        or _any_in(("amount", "total", "cost", "budget"), content)
        or bool(_AMOUNT_RE.search(content))
    )


def is_legal(doc: Document) -> bool:
    title, kind, content, _ = _fields(doc)
    return (
        _any_in(LEGAL_KEYWORDS, title, kind)
        or _any_in(LEGAL_KEYWORDS + LEGAL_ENTITIES, content)
        or bool(_LEGAL_REF_RE.search(content))
    )


def is_resume(doc: Document) -> bool:
    title, kind, content, _ = _fields(doc)
    return (
        _any_in(RESUME_KEYWORDS, title, kind)
        or _any_in(("experience", "education", "skills", "qualification"), content)
        or bool(_YEAR_SPAN_RE.search(content))
    )


def is_compliance(doc: Document) -> bool:
    title, kind, content, tags = _fields(doc)
    return _any_in(COMPLIANCE_KEYWORDS, title, kind, tags) or _any_in(
        ("compliance", "audit", "inspection", "regulatory"), content
    )


@dataclass(frozen=True)
class VerticalFilter:
    key: str
    matches: Callable[[Document], bool]
    fallback_message: str

    def filter_relevant(self, documents: list[Document]) -> list[Document]:
        return [d for d in documents if self.matches(d)]


VERTICALS: dict[str, VerticalFilter] = {
    v.key: v
    for v in (
        VerticalFilter(
            "financial",
            is_financial,
            "I couldn't find any financial documents (invoices, bills, budgets, receipts) "
            "in your collection to analyze this financial question.",
        ),
        VerticalFilter(
            "legal",
            is_legal,
            "I couldn't find any legal documents (contracts, agreements, notices) in your "
            "collection to analyze this legal question.",
        ),
        VerticalFilter(
            "resume",
            is_resume,
            "I couldn't find any resume or CV documents in your collection to analyze "
            "candidate information.",
        ),
        VerticalFilter(
            "compliance",
            is_compliance,
            "I couldn't find any compliance documents (audits, inspections, policies) in "
            "your collection to check this compliance question.",
        ),
    )
}


def get_vertical(key: str | None) -> VerticalFilter | None:
    if not key:
        return None
    return VERTICALS.get(key.strip().lower())

