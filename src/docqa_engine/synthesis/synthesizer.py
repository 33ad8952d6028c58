"""Grounded synthesis over one or more ranked documents."""

from __future__ import annotations

import asyncio

from docqa_engine.config.constants import (
    MERGED_HEADER,
    MERGED_ORG_HEADER,
    NOT_FOUND_DOC_MESSAGE,
    NOT_FOUND_MESSAGE,
    NOT_FOUND_ORG_MESSAGE,
    STRICT_CLARIFY_MESSAGE,
)
from docqa_engine.config.settings import Settings
from docqa_engine.generation.answer_generator import AnswerGenerator
from docqa_engine.generation.structured_qa import DocIntentClassifier
from docqa_engine.models.domain import DocumentAnswer, DocumentEvidence, SynthesisResult
from docqa_engine.observability.logger import get_logger
from docqa_engine.scoring.confidence import ConfidenceScorer
from docqa_engine.scoring.reason_codes import ReasonCode

logger = get_logger("synthesizer")


def not_found_message(scope: str) -> str:
    if scope == "folder":
        return NOT_FOUND_MESSAGE
    if scope == "doc":
        return NOT_FOUND_DOC_MESSAGE
    return NOT_FOUND_ORG_MESSAGE


def not_found_result(scope: str, reason: ReasonCode) -> SynthesisResult:
    return SynthesisResult(
        answer=not_found_message(scope),
        citations=[],
        coverage=0.0,
        confidence=0.0,
        status="not_found",
        reasons=[str(reason)],
    )


class GroundedSynthesizer:
    def __init__(
        self,
        generator: AnswerGenerator,
        intent_classifier: DocIntentClassifier,
        confidence_scorer: ConfidenceScorer,
        settings: Settings,
    ) -> None:
        self._generator = generator
        self._intent = intent_classifier
        self._confidence = confidence_scorer
        self._settings = settings

    async def answer(
        self,
        question: str,
        evidence: list[DocumentEvidence],
        scope: str,
        *,
        strict_citations: bool = False,
    ) -> SynthesisResult:
        """Answer from ``evidence`` (rank order), merging per-document answers.

        The result is always an answer, a not-found result or, under strict
        citations, a clarification request.
        """
        evidence = [e for e in evidence if e.chunks][: self._settings.max_answer_docs]
        if not evidence:
            return not_found_result(scope, ReasonCode.NO_EVIDENCE)

        doc_intent = await self._intent.classify(question)
        # gather preserves rank order regardless of completion order
        answers: list[DocumentAnswer] = list(
            await asyncio.gather(
                *(
                    self._generator.answer_document(question, e, doc_intent.mode)
                    for e in evidence
                )
            )
        )
        usable = [a for a in answers if a.usable]
        logger.info("synthesis", documents=len(answers), usable=len(usable), mode=doc_intent.mode)

        if not usable:
            return not_found_result(scope, ReasonCode.INSUFFICIENT_EVIDENCE)

        if len(usable) == 1:
            result = self._single(usable[0])
        else:
            result = self._merge(usable, scope)

        if strict_citations and (
            not result.citations or result.coverage < self._settings.strict_coverage_threshold
        ):
            logger.info("strict_citations_unmet", coverage=round(result.coverage, 4))
            return SynthesisResult(
                answer=STRICT_CLARIFY_MESSAGE,
                citations=[],
                coverage=result.coverage,
                confidence=result.confidence,
                status="clarify",
                reasons=result.reasons + [str(ReasonCode.STRICT_CITATIONS_UNMET)],
            )
        return result

    @staticmethod
    def _single(answer: DocumentAnswer) -> SynthesisResult:
        degraded = answer.status == "degraded"
        return SynthesisResult(
            answer=answer.answer,
            citations=list(answer.citations),
            coverage=answer.coverage,
            confidence=answer.confidence,
            status="degraded" if degraded else "answer",
            reasons=[str(ReasonCode.REASONING_DEGRADED)] if degraded else [],
        )

    def _merge(self, answers: list[DocumentAnswer], scope: str) -> SynthesisResult:
        header = MERGED_HEADER if scope == "folder" else MERGED_ORG_HEADER
        bullets = "\n".join(
            f"- {a.title or f'Document {i}'}: {a.answer}" for i, a in enumerate(answers, 1)
        )
        citations = [c for a in answers for c in a.citations][: self._settings.max_citations]
        coverage = self._confidence.mean([a.coverage for a in answers])
        avg_similarity = self._confidence.mean([a.avg_similarity for a in answers])
        confidence = self._confidence.score(coverage, avg_similarity)

        reasons = [str(ReasonCode.MULTI_DOCUMENT_MERGE)]
        degraded = [a for a in answers if a.status == "degraded"]
        if degraded:
            reasons.append(str(ReasonCode.REASONING_DEGRADED))
        return SynthesisResult(
            answer=f"{header}\n\n{bullets}",
            citations=citations,
            coverage=coverage,
            confidence=confidence,
            status="degraded" if len(degraded) == len(answers) else "answer",
            reasons=reasons,
        )
