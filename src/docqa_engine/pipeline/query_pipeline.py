"""Query engine: routes a question and executes the routed intent end to end."""

from __future__ import annotations

import structlog

from docqa_engine.config.constants import (
    CASUAL_REPLY,
    COUNT_NOT_FOUND_MESSAGE,
    LINKED_TARGET_CLARIFY,
    NO_LINKS_MESSAGE,
    NO_MATCHING_DOCUMENTS,
    SHORT_QUESTION_CLARIFY,
)
from docqa_engine.config.settings import Settings
from docqa_engine.exceptions import RetrievalError
from docqa_engine.models.domain import (
    Chunk,
    Citation,
    ConversationTurn,
    Document,
    Intent,
    QueryPlan,
    Question,
    RoutingDecision,
    ScopeContext,
    SynthesisResult,
)
from docqa_engine.models.schemas import Citation as CitationSchema
from docqa_engine.models.schemas import DebugInfo, QueryRequest, QueryResponse
from docqa_engine.observability.logger import get_logger
from docqa_engine.observability.metrics import log_routing_metrics, log_synthesis_metrics
from docqa_engine.observability.tracing import TraceContext
from docqa_engine.query.filters import FilterExtractor, build_query_plan
from docqa_engine.query.router import IntentRouter
from docqa_engine.query.understanding import keywords
from docqa_engine.retrieval.field_extractor import (
    COUNT_SWEEP_KEYWORDS,
    extract_labeled_fields,
    find_count,
    format_count,
    format_fields,
    sweep_keywords,
    wanted_fields,
)
from docqa_engine.retrieval.ranker import HybridRanker
from docqa_engine.retrieval.retriever import ScopedRetriever, metadata_filters
from docqa_engine.retrieval.scope import ScopeResolver
from docqa_engine.scoring.reason_codes import ReasonCode
from docqa_engine.synthesis.synthesizer import GroundedSynthesizer, not_found_result
from docqa_engine.verticals.registry import VerticalFilter, get_vertical

logger = get_logger("query_pipeline")

# Intents that rank documents by metadata and therefore need extracted filters
_FILTERED_INTENTS = {Intent.LIST_DOCS, Intent.COMPARE, Intent.FOLDER_QA}
# Chunk-driven intents; the ranked intents apply the vertical after metadata search
_VERTICAL_SCOPED_INTENTS = {Intent.FIELD_EXTRACT, Intent.CONTENT_QA}


def _result(
    answer: str,
    confidence: float,
    *,
    citations: list[Citation] | None = None,
    coverage: float = 1.0,
    status: str = "answer",
    reasons: list[str] | None = None,
) -> SynthesisResult:
    return SynthesisResult(
        answer=answer,
        citations=citations or [],
        coverage=coverage,
        confidence=confidence,
        status=status,
        reasons=reasons or [],
    )


def _describe(document: Document) -> str:
    parts = [document.date.isoformat() if document.date else "undated"]
    if document.doc_type:
        parts.append(document.doc_type)
    if document.sender:
        parts.append(f"from {document.sender}")
    return f"**{document.title}** ({', '.join(parts)})"


def _vertical_empty(vertical: VerticalFilter) -> SynthesisResult:
    logger.info("vertical_filter_empty", vertical=vertical.key)
    return _result(
        vertical.fallback_message,
        0.0,
        coverage=0.0,
        status="not_found",
        reasons=[str(ReasonCode.VERTICAL_FILTER_EMPTY)],
    )


class QueryEngine:
    def __init__(
        self,
        router: IntentRouter,
        filter_extractor: FilterExtractor,
        scope_resolver: ScopeResolver,
        retriever: ScopedRetriever,
        ranker: HybridRanker,
        synthesizer: GroundedSynthesizer,
        settings: Settings,
    ) -> None:
        self._router = router
        self._filters = filter_extractor
        self._scope = scope_resolver
        self._retriever = retriever
        self._ranker = ranker
        self._synthesizer = synthesizer
        self._settings = settings

    async def execute(self, request: QueryRequest) -> QueryResponse:
        trace = TraceContext()
        with structlog.contextvars.bound_contextvars(trace_id=trace.trace_id):
            return await self._execute(request, trace)

    async def _execute(self, request: QueryRequest, trace: TraceContext) -> QueryResponse:
        turns = self._settings.conversation_turns
        history = request.conversation[-turns:] if turns else []
        question = Question(
            text=request.question,
            conversation=tuple(ConversationTurn(m.role, m.content) for m in history),
        )
        scope = ScopeContext(
            org_id=request.org_id,
            scope=request.scope,
            doc_id=request.doc_id,
            folder_id=request.folder_id,
            include_linked=request.include_linked,
            include_versions=request.include_versions,
            focus_doc_ids=tuple(request.focus_doc_ids),
        )

        # STEP 1: Routing
        with trace.span("routing"):
            decision = await self._router.route(question, scope)
        log_routing_metrics(
            trace.trace_id,
            str(decision.intent),
            decision.scope,
            decision.confidence,
            decision.source,
        )

        considered = 0
        if decision.intent == Intent.CLARIFY:
            reason = (
                ReasonCode.CLARIFY_SHORT_QUESTION
                if decision.source == "deterministic"
                else ReasonCode.CLARIFY_REQUESTED
            )
            result = _result(
                decision.clarification_question or SHORT_QUESTION_CLARIFY,
                decision.confidence,
                coverage=0.0,
                status="clarify",
                reasons=[str(reason)],
            )
        elif decision.intent == Intent.CASUAL:
            result = _result(CASUAL_REPLY, decision.confidence, coverage=0.0)
        else:
            try:
                result, considered = await self._run_intent(request, scope, decision, trace)
            except RetrievalError as e:
                logger.error("retrieval_failed", error=str(e), intent=str(decision.intent))
                result = not_found_result(scope.scope, ReasonCode.RETRIEVAL_FAILED)

        if decision.source == "default":
            result.reasons.insert(0, str(ReasonCode.ROUTED_BY_DEFAULT))

        log_synthesis_metrics(
            trace.trace_id,
            result.status,
            result.coverage,
            result.confidence,
            len(result.citations),
            considered,
        )
        return self._build_response(result, decision, considered, trace)

    async def _run_intent(
        self,
        request: QueryRequest,
        scope: ScopeContext,
        decision: RoutingDecision,
        trace: TraceContext,
    ) -> tuple[SynthesisResult, int]:
        # STEP 2: Scope resolution
        with trace.span("scope"):
            allowed = await self._scope.allowed_doc_ids(scope)
        if allowed is not None and not allowed and decision.intent != Intent.DOC_COUNT:
            return not_found_result(scope.scope, ReasonCode.NO_DOCUMENTS_IN_SCOPE), 0

        vertical = get_vertical(request.vertical)
        if vertical is not None and decision.intent in _VERTICAL_SCOPED_INTENTS:
            with trace.span("vertical", vertical=vertical.key):
                documents = await self._retriever.documents_in_scope(request.org_id, allowed)
                allowed = [d.id for d in vertical.filter_relevant(documents)]
            if not allowed:
                return _vertical_empty(vertical), 0

        # STEP 3: Planning
        with trace.span("planning"):
            filters = None
            if decision.intent in _FILTERED_INTENTS:
                filters = await self._filters.extract_filters(request.question)
            plan = build_query_plan(request.question, decision, filters, request.filters)

        # STEP 4: Intent execution
        with trace.span("execution", intent=str(decision.intent)):
            if decision.intent == Intent.LIST_DOCS:
                return await self._list_documents(request, decision, allowed, plan)
            if decision.intent == Intent.DOC_COUNT:
                return await self._count_documents(request, decision, allowed)
            if decision.intent == Intent.FIELD_EXTRACT:
                return await self._extract_fields(request, scope, decision, allowed, plan)
            if decision.intent == Intent.COMPARE:
                return await self._compare(request, scope, allowed, plan)
            if decision.intent == Intent.LINKED:
                return await self._linked(scope, decision, allowed)
            if decision.intent == Intent.FOLDER_QA:
                return await self._folder_qa(request, scope, allowed, plan)
            return await self._content_qa(request, scope, decision, allowed, plan)

    async def _ranked_documents(
        self,
        request: QueryRequest,
        allowed: list[str] | None,
        plan: QueryPlan,
        limit: int,
    ) -> tuple[list[Document], SynthesisResult | None]:
        """Metadata search, vertical filter and ranking.

        Returns the ranked documents, or a terminal result when a vertical
        filter leaves nothing to rank.
        """
        documents = await self._retriever.search_documents(
            request.org_id, metadata_filters(plan, allowed, request.filters)
        )
        vertical = get_vertical(request.vertical)
        if vertical is not None:
            documents = vertical.filter_relevant(documents)
            if not documents:
                return [], _vertical_empty(vertical)
        ranked = self._ranker.rank(documents, plan, limit=limit)
        return [c.document for c in ranked], None

    async def _list_documents(
        self,
        request: QueryRequest,
        decision: RoutingDecision,
        allowed: list[str] | None,
        plan: QueryPlan,
    ) -> tuple[SynthesisResult, int]:
        documents, terminal = await self._ranked_documents(
            request, allowed, plan, self._settings.list_limit
        )
        if terminal is not None:
            return terminal, 0
        if not documents:
            return _result(
                NO_MATCHING_DOCUMENTS,
                0.0,
                coverage=0.0,
                status="not_found",
                reasons=[str(ReasonCode.NO_DOCUMENTS_IN_SCOPE)],
            ), 0

        ordinal = decision.target.ordinal
        if ordinal and ordinal <= len(documents):
            chosen = documents[ordinal - 1]
            answer = f"### Document {ordinal}\n\n- {_describe(chosen)}"
            listed = [chosen]
        else:
            lines = [f"{i}. {_describe(d)}" for i, d in enumerate(documents, 1)]
            answer = f"### Documents ({len(documents)})\n\n" + "\n".join(lines)
            listed = documents

        snippet_chars = self._settings.citation_snippet_chars
        citations = [
            Citation(doc_id=d.id, doc_name=d.title, snippet=d.content[:snippet_chars])
            for d in listed
        ]
        return _result(answer, decision.confidence, citations=citations), len(documents)

    async def _count_documents(
        self,
        request: QueryRequest,
        decision: RoutingDecision,
        allowed: list[str] | None,
    ) -> tuple[SynthesisResult, int]:
        doc_ids = await self._retriever.scope_doc_ids(request.org_id, allowed)
        n = len(doc_ids)
        noun = "document" if n == 1 else "documents"
        where = "This folder" if request.scope == "folder" else "Your collection"
        return _result(f"{where} contains **{n}** {noun}.", decision.confidence), n

    async def _extract_fields(
        self,
        request: QueryRequest,
        scope: ScopeContext,
        decision: RoutingDecision,
        allowed: list[str] | None,
        plan: QueryPlan,
    ) -> tuple[SynthesisResult, int]:
        org_id = request.org_id
        chunks, _ = await self._retriever.chunks_for_question(
            org_id, request.question, allowed, plan
        )
        counting = "count" in decision.required_entities
        wanted = set() if counting else wanted_fields(request.question)

        swept = False
        answer, source = self._field_answer(chunks, counting, wanted)
        if answer is None:
            terms = list(COUNT_SWEEP_KEYWORDS) if counting else sweep_keywords(wanted)
            doc_ids = await self._retriever.scope_doc_ids(org_id, allowed)
            sweep = await self._retriever.keyword_chunks(org_id, doc_ids, terms)
            logger.info("field_sweep", terms=len(terms), chunks=len(sweep))
            answer, source = self._field_answer(sweep, counting, wanted)
            swept = True

        if answer is not None and source is not None:
            titles = {
                d.id: d.title
                for d in await self._retriever.documents_in_scope(org_id, [source.doc_id])
            }
            citation = Citation(
                doc_id=source.doc_id,
                doc_name=titles.get(source.doc_id, source.doc_id),
                snippet=source.content[: self._settings.citation_snippet_chars],
                page=source.page,
            )
            reasons = [str(ReasonCode.FIELD_SWEEP_USED)] if swept else []
            considered = len({c.doc_id for c in chunks}) or 1
            return _result(
                answer, decision.confidence, citations=[citation], reasons=reasons
            ), considered

        if counting and not chunks:
            return _result(
                COUNT_NOT_FOUND_MESSAGE,
                0.0,
                coverage=0.0,
                status="not_found",
                reasons=[str(ReasonCode.NO_EVIDENCE)],
            ), 0

        logger.info("field_extraction_fell_back", counting=counting)
        result, considered = await self._content_qa(request, scope, decision, allowed, plan)
        result.reasons.insert(0, str(ReasonCode.CONTENT_QA_FALLBACK))
        return result, considered

    @staticmethod
    def _field_answer(
        chunks: list[Chunk], counting: bool, wanted: set[str]
    ) -> tuple[str | None, Chunk | None]:
        if counting:
            found = find_count(chunks)
            if found is None:
                return None, None
            n, chunk = found
            return format_count(n), chunk
        if not wanted:
            return None, None
        match = extract_labeled_fields(chunks, wanted)
        if not match.values:
            return None, None
        return format_fields(match.values), match.chunk

    async def _compare(
        self,
        request: QueryRequest,
        scope: ScopeContext,
        allowed: list[str] | None,
        plan: QueryPlan,
    ) -> tuple[SynthesisResult, int]:
        documents, terminal = await self._ranked_documents(request, allowed, plan, 2)
        if terminal is not None:
            return terminal, 0
        if not documents:
            return not_found_result(scope.scope, ReasonCode.NO_DOCUMENTS_IN_SCOPE), 0
        result = await self._synthesize_over(request, scope, documents, plan)
        return result, len(documents)

    async def _linked(
        self,
        scope: ScopeContext,
        decision: RoutingDecision,
        allowed: list[str] | None,
    ) -> tuple[SynthesisResult, int]:
        if scope.scope == "doc" and scope.doc_id:
            anchors = [scope.doc_id]
        elif scope.focus_doc_ids:
            anchors = list(scope.focus_doc_ids)
        elif scope.scope == "folder" and allowed:
            anchors = allowed
        else:
            return _result(
                LINKED_TARGET_CLARIFY,
                decision.confidence,
                coverage=0.0,
                status="clarify",
                reasons=[str(ReasonCode.CLARIFY_REQUESTED)],
            ), 0

        links = await self._scope.links_for(scope.org_id, anchors)
        anchor_set = set(anchors)
        linked_ids: list[str] = []
        for link in links:
            for doc_id in (link.doc_id, link.linked_doc_id):
                if doc_id not in anchor_set and doc_id not in linked_ids:
                    linked_ids.append(doc_id)
        if not linked_ids:
            return _result(
                NO_LINKS_MESSAGE,
                0.0,
                coverage=0.0,
                status="not_found",
                reasons=[str(ReasonCode.NO_EVIDENCE)],
            ), 0

        by_id = {
            d.id: d for d in await self._retriever.documents_in_scope(scope.org_id, linked_ids)
        }
        lines = [f"- {_describe(by_id[i])}" for i in linked_ids if i in by_id]
        if not lines:
            return _result(
                NO_LINKS_MESSAGE,
                0.0,
                coverage=0.0,
                status="not_found",
                reasons=[str(ReasonCode.NO_EVIDENCE)],
            ), 0
        answer = "### Linked documents\n\n" + "\n".join(lines)
        return _result(answer, decision.confidence), len(lines)

    async def _content_qa(
        self,
        request: QueryRequest,
        scope: ScopeContext,
        decision: RoutingDecision,
        allowed: list[str] | None,
        plan: QueryPlan,
    ) -> tuple[SynthesisResult, int]:
        ordinal = decision.target.ordinal
        if ordinal and ordinal <= len(scope.focus_doc_ids):
            # "the second one" refers to the most recently listed documents
            target_id = scope.focus_doc_ids[ordinal - 1]
            if allowed is None or target_id in allowed:
                allowed = [target_id]

        chunks, lexical = await self._retriever.chunks_for_question(
            request.org_id, request.question, allowed, plan
        )
        if not chunks:
            return not_found_result(scope.scope, ReasonCode.NO_EVIDENCE), 0

        focus = scope.focus_doc_ids if decision.target.prefer == "focus" else ()
        shortlist = self._ranker.shortlist(chunks, focus)
        by_id = {
            d.id: d for d in await self._retriever.documents_in_scope(request.org_id, shortlist)
        }
        documents = [by_id.get(i) or Document(id=i, title="Document") for i in shortlist]
        logger.info("content_shortlist", documents=len(documents), lexical=lexical)

        evidence = self._retriever.build_evidence(documents, chunks)
        result = await self._synthesizer.answer(
            request.question,
            evidence,
            scope.scope,
            strict_citations=request.strict_citations,
        )
        if lexical:
            result.reasons.append(str(ReasonCode.LEXICAL_FALLBACK))
        return result, len(documents)

    async def _folder_qa(
        self,
        request: QueryRequest,
        scope: ScopeContext,
        allowed: list[str] | None,
        plan: QueryPlan,
    ) -> tuple[SynthesisResult, int]:
        limit = self._settings.max_answer_docs
        documents, terminal = await self._ranked_documents(request, allowed, plan, limit)
        if terminal is not None:
            return terminal, 0

        fallback = not documents
        if fallback:
            recent = await self._retriever.documents_in_scope(request.org_id, allowed)
            documents = sorted(
                recent,
                key=lambda d: (-(d.date.toordinal() if d.date else 0), d.id),
            )[:limit]
            logger.info("folder_recent_fallback", documents=len(documents))
        if not documents:
            return not_found_result(scope.scope, ReasonCode.NO_DOCUMENTS_IN_SCOPE), 0

        result = await self._synthesize_over(request, scope, documents, plan)
        if fallback:
            result.reasons.append(str(ReasonCode.RECENT_DOCS_FALLBACK))
        return result, len(documents)

    async def _synthesize_over(
        self,
        request: QueryRequest,
        scope: ScopeContext,
        documents: list[Document],
        plan: QueryPlan,
    ) -> SynthesisResult:
        """Synthesize over fixed documents, in the given order."""
        doc_ids = [d.id for d in documents]
        chunks = await self._retriever.vector_chunks(
            request.org_id,
            request.question,
            doc_ids,
            match_count=self._settings.doc_vector_match_count,
            threshold=self._settings.doc_vector_similarity_threshold,
        )
        lexical = not chunks
        if lexical:
            terms = sorted(plan.terms) or keywords(request.question, limit=10)
            chunks = await self._retriever.keyword_chunks(request.org_id, doc_ids, terms)

        evidence = self._retriever.build_evidence(documents, chunks)
        result = await self._synthesizer.answer(
            request.question,
            evidence,
            scope.scope,
            strict_citations=request.strict_citations,
        )
        if lexical:
            result.reasons.append(str(ReasonCode.LEXICAL_FALLBACK))
        return result

    def _build_response(
        self,
        result: SynthesisResult,
        decision: RoutingDecision,
        considered: int,
        trace: TraceContext,
    ) -> QueryResponse:
        return QueryResponse(
            answer=result.answer,
            citations=[
                CitationSchema(
                    doc_id=c.doc_id,
                    doc_name=c.doc_name,
                    snippet=c.snippet,
                    page=c.page,
                )
                for c in result.citations
            ],
            confidence=round(result.confidence, 4),
            coverage=round(result.coverage, 4),
            decision=result.status,
            intent=str(decision.intent),
            reasons=list(result.reasons),
            debug=DebugInfo(
                trace_id=trace.trace_id,
                latency_ms=round(trace.elapsed_ms, 2),
                routing_source=decision.source,
                routing_confidence=round(decision.confidence, 4),
                documents_considered=considered,
                spans=trace.span_dicts(),
            ),
        )
