"""Reason codes attached to query responses."""

from __future__ import annotations

from enum import Enum


class ReasonCode(str, Enum):
    CLARIFY_SHORT_QUESTION = "CLARIFY_SHORT_QUESTION"
    CLARIFY_REQUESTED = "CLARIFY_REQUESTED"
    ROUTED_BY_DEFAULT = "ROUTED_BY_DEFAULT"
    NO_DOCUMENTS_IN_SCOPE = "NO_DOCUMENTS_IN_SCOPE"
    NO_EVIDENCE = "NO_EVIDENCE"
    INSUFFICIENT_EVIDENCE = "INSUFFICIENT_EVIDENCE"
    STRICT_CITATIONS_UNMET = "STRICT_CITATIONS_UNMET"
    REASONING_DEGRADED = "REASONING_DEGRADED"
    LEXICAL_FALLBACK = "LEXICAL_FALLBACK"
    FIELD_SWEEP_USED = "FIELD_SWEEP_USED"
    CONTENT_QA_FALLBACK = "CONTENT_QA_FALLBACK"
    RECENT_DOCS_FALLBACK = "RECENT_DOCS_FALLBACK"
    RETRIEVAL_FAILED = "RETRIEVAL_FAILED"
    MULTI_DOCUMENT_MERGE = "MULTI_DOCUMENT_MERGE"
    VERTICAL_FILTER_EMPTY = "VERTICAL_FILTER_EMPTY"

    def __str__(self) -> str:
        return self.value
