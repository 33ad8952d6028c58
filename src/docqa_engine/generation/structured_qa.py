"""Classifies a document question as plain QA, table extraction or sum verification."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from docqa_engine.generation.prompt_templates import DocIntentInput, render_doc_intent_prompt
from docqa_engine.observability.logger import get_logger

logger = get_logger("structured_qa")


class DocIntentOutput(BaseModel):
    mode: Literal["PlainQA", "TableExtract", "VerifySum"] = "PlainQA"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class DocIntentClassifier:
    def __init__(self, client) -> None:
        self._client = client
        self._prompt = client.define_prompt(
            "doc_intent_classifier", render_doc_intent_prompt, DocIntentOutput
        )

    async def classify(self, question: str) -> DocIntentOutput:
        """Falls back to PlainQA when the reasoning service is unavailable."""
        if self._client.is_backed_off():
            return DocIntentOutput()
        try:
            result = await self._prompt(DocIntentInput(question=question))
        except Exception as e:
            logger.warning("doc_intent_failed", error=str(e))
            return DocIntentOutput()
        logger.info("doc_intent", mode=result.mode, confidence=result.confidence)
        return result
