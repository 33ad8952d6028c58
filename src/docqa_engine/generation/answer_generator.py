"""Per-document grounded answering over an MMR-selected evidence set."""

from __future__ import annotations

from docqa_engine.config.constants import DEGRADED_HEADER, INSUFFICIENT_EVIDENCE
from docqa_engine.config.settings import Settings
from docqa_engine.exceptions import ReasoningError
from docqa_engine.generation.prompt_templates import (
    DocumentQAInput,
    render_document_qa_prompt,
    system_for_mode,
)
from docqa_engine.models.domain import Chunk, Citation, DocumentAnswer, DocumentEvidence
from docqa_engine.observability.logger import get_logger
from docqa_engine.scoring.confidence import ConfidenceScorer
from docqa_engine.scoring.coverage import CoverageChecker

logger = get_logger("generation")

_INSUFFICIENT_MARKER = "i don't have enough information"


def admits_insufficient(answer: str) -> bool:
    return _INSUFFICIENT_MARKER in answer.lower().replace("’", "'")


def degraded_excerpts(chunks: list[Chunk], limit: int = 3, max_chars: int = 240) -> str:
    lines = [f"({i}) {c.content[:max_chars]}" for i, c in enumerate(chunks[:limit], 1)]
    return DEGRADED_HEADER + "\n\n" + "\n\n".join(lines)


class AnswerGenerator:
    def __init__(
        self,
        client,
        coverage_checker: CoverageChecker,
        confidence_scorer: ConfidenceScorer,
        settings: Settings,
    ) -> None:
        self._client = client
        self._coverage = coverage_checker
        self._confidence = confidence_scorer
        self._settings = settings

    def citations_for(self, evidence: DocumentEvidence) -> list[Citation]:
        doc = evidence.document
        return [
            Citation(
                doc_id=doc.id,
                doc_name=doc.title or "Document",
                snippet=chunk.content[: self._settings.citation_snippet_chars],
                page=chunk.page,
            )
            for chunk in evidence.chunks[: self._settings.doc_citations]
        ]

    async def answer_document(
        self, question: str, evidence: DocumentEvidence, mode: str = "PlainQA"
    ) -> DocumentAnswer:
        doc = evidence.document
        chunks = evidence.chunks
        citations = self.citations_for(evidence)
        avg_similarity = self._confidence.mean([c.similarity or 0.0 for c in chunks])

        if not chunks:
            return DocumentAnswer(
                doc_id=doc.id,
                title=doc.title,
                answer=INSUFFICIENT_EVIDENCE,
                citations=[],
                coverage=0.0,
                confidence=0.0,
                status="insufficient",
            )

        status = "answer"
        prompt = render_document_qa_prompt(
            DocumentQAInput(question=question, title=doc.title, chunks=chunks, mode=mode)
        )
        try:
            output = await self._client.generate(
                prompt, temperature=0.2, system=system_for_mode(mode)
            )
            answer = output.text.strip()
        except ReasoningError as e:
            logger.warning("document_answer_degraded", doc_id=doc.id, error=str(e))
            answer = degraded_excerpts(chunks, max_chars=self._settings.excerpt_chars)
            status = "degraded"

        if not answer or admits_insufficient(answer):
            answer = INSUFFICIENT_EVIDENCE
            status = "insufficient"

        snippets = [c.content for c in chunks]
        coverage = self._coverage.coverage(answer, snippets) if citations else 0.0
        if status == "insufficient":
            coverage = 0.0
        confidence = self._confidence.score(coverage, avg_similarity)

        logger.info(
            "document_answered",
            doc_id=doc.id,
            status=status,
            mode=mode,
            coverage=round(coverage, 4),
            confidence=round(confidence, 4),
        )
        return DocumentAnswer(
            doc_id=doc.id,
            title=doc.title,
            answer=answer,
            citations=citations,
            coverage=coverage,
            confidence=confidence,
            status=status,
            avg_similarity=avg_similarity,
        )
