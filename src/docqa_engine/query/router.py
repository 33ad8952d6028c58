"""Intent and scope routing: deterministic matchers, then the LLM classifier,
then a scope-aware default. Routing never raises."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Literal

from pydantic import BaseModel, Field

from docqa_engine.config.constants import ORDINAL_WORDS, SHORT_QUESTION_CLARIFY
from docqa_engine.config.settings import Settings
from docqa_engine.generation.prompt_templates import RouterPromptInput, render_router_prompt
from docqa_engine.models.domain import Intent, Question, RoutingDecision, ScopeContext, Target
from docqa_engine.observability.logger import get_logger
from docqa_engine.query.understanding import expand_query_terms, extract_entities, normalize_question

logger = get_logger("router")

_DOC_NOUN = r"\b(?:docs?|documents?|files?|records?|papers?|items?|letters?|reports?|invoices?)\b"
_LIST_VERB_RE = re.compile(r"\b(?:find|show|list|display)\b|\ball\b")
_DOC_NOUN_RE = re.compile(_DOC_NOUN)
_DOC_COUNT_RE = re.compile(r"\b(?:how many|count|total number)\b")
_ENTITY_COUNT_RE = re.compile(r"\b(?:how many|number of|count of)\b")
_COMPARE_RE = re.compile(r"\b(?:compare|comparison|difference|diff|versus|vs)\b")
_LINKED_RE = re.compile(r"\b(?:linked|links|versions?|related|relationships?)\b")
_FIR_RE = re.compile(r"\bfir\b")
_FIR_FIELD_RE = re.compile(r"\b(?:number|no|date)\b")
_ROLE_RE = re.compile(r"\b(?:complainant|informant)\b")

_ORDINAL_RE = re.compile(
    r"\b(first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth|\d+(?:st|nd|rd|th))\b"
    r"|(?:^|\s)#(\d+)\b"
)
_FOCUS_RE = re.compile(
    r"\b(?:it|that one|this one|that document|this document|that file|this file|"
    r"the previous one|previous|the last one|the same one)\b"
)


class RouterOutput(BaseModel):
    intent: Literal[
        "FindFiles", "Metadata", "ContentQA", "Linked", "Preview", "Timeline", "Extract",
        "Analysis", "Summarize", "Compare", "Sentiment", "Casual", "Custom",
    ] = "ContentQA"
    agentType: Literal["metadata", "content", "casual"] = "content"
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    needsClarification: bool = False
    clarificationQuestion: str | None = None


def is_list_query(q: str) -> bool:
    return bool(_LIST_VERB_RE.search(q) and _DOC_NOUN_RE.search(q))


def is_doc_count_query(q: str) -> bool:
    return bool(_DOC_COUNT_RE.search(q) and _DOC_NOUN_RE.search(q))


def is_entity_count_query(q: str) -> bool:
    return bool(_ENTITY_COUNT_RE.search(q)) and not _DOC_NOUN_RE.search(q)


def is_compare_query(q: str) -> bool:
    return bool(_COMPARE_RE.search(q))


def is_linked_query(q: str) -> bool:
    return bool(_LINKED_RE.search(q))


def is_labeled_field_query(q: str) -> bool:
    return bool((_FIR_RE.search(q) and _FIR_FIELD_RE.search(q)) or _ROLE_RE.search(q))


def resolve_target(question: str) -> Target:
    """Detect ordinal ("second", "#3") or focus ("it", "the previous one") references."""
    q = question.lower()
    match = _ORDINAL_RE.search(q)
    if match:
        word = match.group(1)
        if word is None:
            ordinal = int(match.group(2))
        elif word in ORDINAL_WORDS:
            ordinal = ORDINAL_WORDS[word]
        else:
            ordinal = int(re.sub(r"\D", "", word))
        if ordinal > 0:
            return Target(ordinal=ordinal, prefer="list")
    if _FOCUS_RE.search(q):
        return Target(prefer="focus")
    return Target()


def _decision(
    intent: Intent,
    scope: str,
    action: str,
    primary_tool: str | None,
    confidence: float,
    supporting_tools: tuple[str, ...] = (),
    required_entities: tuple[str, ...] = (),
    **kwargs,
) -> RoutingDecision:
    return RoutingDecision(
        intent=intent,
        scope=scope,
        action=action,
        primary_tool=primary_tool,
        confidence=confidence,
        supporting_tools=supporting_tools,
        required_entities=required_entities,
        **kwargs,
    )


def match_deterministic(question: str, scope: str) -> RoutingDecision | None:
    """First matching rule wins. ``question`` is expected lowercased."""
    if len(question.split()) < 2:
        return _decision(
            Intent.CLARIFY, scope, "ask", None, 0.3,
            needs_clarification=True,
            clarification_question=SHORT_QUESTION_CLARIFY,
        )
    if is_list_query(question):
        return _decision(Intent.LIST_DOCS, scope, "search", "metadata_search", 0.9,
                         agent_type="metadata")
    if scope == "folder" and is_doc_count_query(question):
        return _decision(Intent.DOC_COUNT, scope, "count", "folder_count", 0.95,
                         agent_type="metadata")
    if is_entity_count_query(question):
        return _decision(Intent.FIELD_EXTRACT, scope, "extract", "extract_numeric", 0.85,
                         ("vector_search",), ("count",))
    if is_compare_query(question):
        return _decision(Intent.COMPARE, scope, "compare", "rerank", 0.8, ("vector_search",))
    if is_linked_query(question):
        return _decision(Intent.LINKED, scope, "linked", "linked_docs", 0.8)
    if is_labeled_field_query(question):
        # folder scope prefers broad content QA over narrow field extraction
        if scope == "folder":
            return _decision(Intent.CONTENT_QA, scope, "qa", "vector_search", 0.8, ("rerank",))
        return _decision(Intent.FIELD_EXTRACT, scope, "extract", "extract_field", 0.85,
                         ("vector_search",), ("fields",))
    return None


def scope_default(scope: str) -> RoutingDecision:
    if scope == "folder":
        return _decision(Intent.FOLDER_QA, scope, "qa_across_docs", "folder_multi_doc_qa", 0.65,
                         ("vector_search",), source="default")
    return _decision(Intent.CONTENT_QA, scope, "qa", "vector_search", 0.6, ("rerank",),
                     source="default")


class IntentRouter:
    def __init__(self, client, settings: Settings) -> None:
        self._client = client
        self._turns = settings.conversation_turns
        self._classify = client.define_prompt(
            "intent_classifier", render_router_prompt, RouterOutput
        )

    async def route(self, question: Question, scope: ScopeContext) -> RoutingDecision:
        text = normalize_question(question.text)
        scope_name = scope.scope if scope.scope in ("doc", "folder") else "org"

        decision = match_deterministic(text.lower(), scope_name)
        if decision is None and not self._client.is_backed_off():
            decision = await self._route_with_llm(question, text, scope_name)
        if decision is None:
            decision = scope_default(scope_name)

        decision = replace(
            decision,
            target=resolve_target(text),
            entities=tuple(extract_entities(text)),
            expanded_terms=tuple(expand_query_terms(text)),
        )
        logger.info(
            "routed",
            intent=str(decision.intent),
            scope=decision.scope,
            confidence=decision.confidence,
            source=decision.source,
        )
        return decision

    async def _route_with_llm(
        self, question: Question, text: str, scope: str
    ) -> RoutingDecision | None:
        turns = list(question.conversation[-self._turns :]) if self._turns else []
        try:
            out = await self._classify(RouterPromptInput(question=text, conversation=turns))
        except Exception as e:
            logger.warning("llm_routing_failed", error=str(e))
            return None

        confidence = out.confidence
        if out.needsClarification:
            return _decision(
                Intent.CLARIFY, scope, "ask", None, confidence,
                needs_clarification=True,
                clarification_question=out.clarificationQuestion or SHORT_QUESTION_CLARIFY,
                agent_type=out.agentType,
                source="llm",
            )
        if out.agentType == "metadata":
            return _decision(Intent.LIST_DOCS, scope, "search", "metadata_search", confidence,
                             agent_type="metadata", source="llm")
        if out.agentType == "casual":
            return _decision(Intent.CASUAL, scope, "reply", None, confidence,
                             agent_type="casual", source="llm")
        return _decision(Intent.CONTENT_QA, scope, "qa", "vector_search", confidence, ("rerank",),
                         source="llm")
