"""Metric recording helpers for traces."""

from __future__ import annotations

from docqa_engine.observability.logger import get_logger

logger = get_logger("metrics")


def log_routing_metrics(
    trace_id: str,
    intent: str,
    scope: str,
    confidence: float,
    source: str,
) -> None:
    logger.info(
        "routing_metrics",
        trace_id=trace_id,
        intent=intent,
        scope=scope,
        confidence=round(confidence, 4),
        source=source,
    )


def log_synthesis_metrics(
    trace_id: str,
    decision: str,
    coverage: float,
    confidence: float,
    citations: int,
    documents_considered: int,
) -> None:
    logger.info(
        "synthesis_metrics",
        trace_id=trace_id,
        decision=decision,
        coverage=round(coverage, 4),
        confidence=round(confidence, 4),
        citations=citations,
        documents_considered=documents_considered,
    )

