"""Query normalization, heuristic entity extraction and term expansion.

These heuristics work without the reasoning service, so routing and planning
still have entities and terms to work with when it is unavailable.
"""

from __future__ import annotations

import re
import unicodedata

from docqa_engine.config.constants import QUERY_SYNONYMS, STOPWORDS
from docqa_engine.models.domain import Entity

_WORD_RE = re.compile(r"[a-z0-9]+")
_QUOTED_RE = re.compile(r"[\"“]([^\"”]{3,})[\"”]")
_EMAIL_RE = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE)
_MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
)
_DATE_PATTERNS = (
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{4}-\d{2}\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(rf"\b(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(rf"\b\d{{1,2}}\s+(?:{_MONTHS})\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(r"\b(?:last month|this month|last week|yesterday|today)\b", re.IGNORECASE),
)
_DOC_TYPE_PATTERNS = {
    "invoice": re.compile(r"\b(?:invoices?|bills?|receipts?|payments?)\b", re.IGNORECASE),
    "contract": re.compile(r"\b(?:contracts?|agreements?)\b", re.IGNORECASE),
    "report": re.compile(r"\b(?:reports?|analysis|study|review)\b", re.IGNORECASE),
    "letter": re.compile(r"\b(?:letters?|correspondence|memos?)\b", re.IGNORECASE),
    "inspection": re.compile(r"\binspections?\b", re.IGNORECASE),
    "resume": re.compile(r"\b(?:resumes?|cv|curriculum vitae)\b", re.IGNORECASE),
    "legal": re.compile(r"\b(?:legal|court|judgment|notice)\b", re.IGNORECASE),
}
_NAME_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
_ORG_RE = re.compile(
    r"\b[A-Z][A-Za-z0-9&.\-]*(?:\s+[A-Z][A-Za-z0-9&.\-]*)*\s"
    r"(?:Inc|Corp|Corporation|LLC|Ltd|Limited|Company|GmbH|PLC|University|College|"
    r"Institute|Department|Agency|Board)\b"
)
_CATEGORY_RE = re.compile(r"\b(?:category|type)\s*[:\-]\s*([A-Za-z0-9 _-]{3,})", re.IGNORECASE)
_NON_NAMES = frozenset(
    {"the", "this", "that", "what", "when", "where", "how", "why", "who", "which",
     "find", "show", "list", "give", "tell", "compare", "summarize", "please", "can",
     "is", "are", "does", "do", "i", "my", "fir"}
    | set(_MONTHS.split("|"))
)


def normalize_question(text: str) -> str:
    text = unicodedata.normalize("NFKC", text or "")
    return re.sub(r"\s+", " ", text).strip()


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric tokens."""
    return _WORD_RE.findall((text or "").lower())


def keywords(text: str, limit: int | None = None) -> list[str]:
    """Informative tokens: no stopwords, longer than two characters, first-seen order."""
    seen: dict[str, None] = {}
    for token in tokenize(text):
        if len(token) > 2 and token not in STOPWORDS:
            seen.setdefault(token, None)
    result = list(seen)
    return result[:limit] if limit else result


def expand_query_terms(text: str) -> list[str]:
    terms = keywords(text, limit=10)
    expanded = list(terms)
    for term in terms:
        singular = term[:-1] if term.endswith("s") and len(term) > 3 else term
        for synonym in QUERY_SYNONYMS.get(singular, []):
            if synonym not in expanded:
                expanded.append(synonym)
    return expanded


def extract_entities(text: str) -> list[Entity]:
    text = normalize_question(text)
    entities: list[Entity] = []
    seen: set[tuple[str, str]] = set()

    def add(kind: str, value: str, confidence: float) -> None:
        key = (kind, value.lower())
        if value and key not in seen:
            seen.add(key)
            entities.append(Entity(type=kind, value=value, confidence=confidence))

    for match in _QUOTED_RE.finditer(text):
        add("title", match.group(1).strip(), 0.9)
    for match in _EMAIL_RE.finditer(text):
        add("email", match.group(0).lower(), 0.9)
    for pattern in _DATE_PATTERNS:
        for match in pattern.finditer(text):
            add("date", match.group(0), 0.8)
    for doc_type, pattern in _DOC_TYPE_PATTERNS.items():
        if pattern.search(text):
            add("document_type", doc_type, 0.7)
    org_spans = []
    for match in _ORG_RE.finditer(text):
        org_spans.append(match.span())
        add("organization", match.group(0).strip(), 0.7)
    for match in _NAME_RE.finditer(text):
        if any(start <= match.start() < end for start, end in org_spans):
            continue
        words = [w for w in match.group(0).split() if w.lower() not in _NON_NAMES]
        name = " ".join(words)
        if 2 < len(name) < 30:
            add("person", name, 0.6)
    for match in _CATEGORY_RE.finditer(text):
        add("category", match.group(1).strip().lower(), 0.7)
    return entities
