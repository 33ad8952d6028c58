"""Pydantic models for caller-facing request/response serialization."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str


class RequestFilters(BaseModel):
    sender: str | None = None
    receiver: str | None = None
    category: str | None = None
    type: str | None = None
    date_start: date | None = None
    date_end: date | None = None


class QueryRequest(BaseModel):
    question: str
    org_id: str
    scope: Literal["org", "folder", "doc"] = "org"
    doc_id: str | None = None
    folder_id: str | None = None
    include_linked: bool = False
    include_versions: bool = False
    conversation: list[ConversationMessage] = Field(default_factory=list)
    focus_doc_ids: list[str] = Field(default_factory=list)
    strict_citations: bool = False
    filters: RequestFilters | None = None
    vertical: str | None = None


class Citation(BaseModel):
    doc_id: str
    doc_name: str
    snippet: str
    page: int | None = None


class DebugInfo(BaseModel):
    trace_id: str
    latency_ms: float
    routing_source: str
    routing_confidence: float
    documents_considered: int = 0
    spans: list[dict] = Field(default_factory=list)


class QueryResponse(BaseModel):
    answer: str
    citations: list[Citation]
    confidence: float
    coverage: float
    decision: Literal["answer", "not_found", "clarify", "degraded"]
    intent: str
    reasons: list[str]
    debug: DebugInfo
