"""Core domain objects used throughout the system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class Intent(str, Enum):
    CLARIFY = "Clarify"
    CASUAL = "Casual"
    LIST_DOCS = "ListDocs"
    DOC_COUNT = "DocCount"
    FIELD_EXTRACT = "FieldExtract"
    COMPARE = "Compare"
    LINKED = "Linked"
    CONTENT_QA = "ContentQA"
    FOLDER_QA = "FolderQA"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ConversationTurn:
    role: str  # "user", "assistant"
    content: str


@dataclass(frozen=True)
class Question:
    text: str
    conversation: tuple[ConversationTurn, ...] = ()


@dataclass(frozen=True)
class ScopeContext:
    org_id: str
    scope: str = "org"  # "org", "folder", "doc"
    doc_id: str | None = None
    folder_id: str | None = None
    include_linked: bool = False
    include_versions: bool = False
    focus_doc_ids: tuple[str, ...] = ()  # documents discussed most recently


@dataclass(frozen=True)
class Target:
    ordinal: int | None = None
    prefer: str | None = None  # "list", "focus"


@dataclass(frozen=True)
class Entity:
    type: str  # "person", "organization", "email", "category", "document_type", "date", "title"
    value: str
    confidence: float = 0.7


@dataclass(frozen=True)
class RoutingDecision:
    intent: Intent
    scope: str
    action: str
    primary_tool: str | None
    confidence: float
    supporting_tools: tuple[str, ...] = ()
    target: Target = field(default_factory=Target)
    required_entities: tuple[str, ...] = ()
    needs_clarification: bool = False
    clarification_question: str | None = None
    agent_type: str = "content"  # "metadata", "content", "casual"
    entities: tuple[Entity, ...] = ()
    expanded_terms: tuple[str, ...] = ()
    source: str = "deterministic"  # "deterministic", "llm", "default"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class ExtractedFilters:
    sender: str | None = None
    receiver: str | None = None
    date_range: DateRange | None = None


@dataclass
class QueryPlan:
    terms: set[str] = field(default_factory=set)
    boost_terms: set[str] = field(default_factory=set)
    type_filters: set[str] = field(default_factory=set)
    category_filters: set[str] = field(default_factory=set)
    date_range: DateRange | None = None
    sender: str | None = None
    receiver: str | None = None
    entities: list[Entity] = field(default_factory=list)


@dataclass
class Document:
    id: str
    title: str
    content: str = ""
    sender: str | None = None
    receiver: str | None = None
    category: str | None = None
    doc_type: str | None = None
    date: date | None = None
    tags: list[str] = field(default_factory=list)
    folder_id: str | None = None


@dataclass
class MetadataFilters:
    sender: str | None = None
    receiver: str | None = None
    category: str | None = None
    doc_type: str | None = None
    date_start: date | None = None
    date_end: date | None = None
    allowed_ids: frozenset[str] | None = None


@dataclass
class CandidateDocument:
    document: Document
    score: float
    similarity: float  # 1 - 1/(1+score)

    @property
    def id(self) -> str:
        return self.document.id

    @property
    def title(self) -> str:
        return self.document.title


@dataclass(frozen=True)
class Chunk:
    doc_id: str
    content: str
    page: int | None = None
    similarity: float | None = None


@dataclass
class DocumentLink:
    doc_id: str
    linked_doc_id: str
    link_type: str | None = None


@dataclass
class Citation:
    doc_id: str
    doc_name: str
    snippet: str
    page: int | None = None


@dataclass
class DocumentEvidence:
    document: Document
    chunks: list[Chunk]  # MMR-selected, rank order


@dataclass
class DocumentAnswer:
    doc_id: str
    title: str
    answer: str
    citations: list[Citation]
    coverage: float
    confidence: float
    status: str = "answer"  # "answer", "insufficient", "degraded"
    avg_similarity: float = 0.0

    @property
    def usable(self) -> bool:
        return self.status != "insufficient"


@dataclass
class SynthesisResult:
    answer: str
    citations: list[Citation]
    coverage: float
    confidence: float
    status: str = "answer"  # "answer", "not_found", "clarify", "degraded"
    reasons: list[str] = field(default_factory=list)


@dataclass
class GenerationOutput:
    text: str
    provider: str
    fallback_used: bool = False
