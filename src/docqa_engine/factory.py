"""Engine wiring: builds a QueryEngine from settings and datastore collaborators."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from docqa_engine.config.settings import Settings
from docqa_engine.embeddings.null_embedder import NullEmbedder
from docqa_engine.embeddings.openai_embedder import OpenAIEmbedder
from docqa_engine.exceptions import ConfigurationError
from docqa_engine.generation.answer_generator import AnswerGenerator
from docqa_engine.generation.structured_qa import DocIntentClassifier
from docqa_engine.observability.logger import get_logger, is_configured, setup_logging
from docqa_engine.pipeline.query_pipeline import QueryEngine
from docqa_engine.protocols.datastore import ChunkIndex, LinkStore, MetadataStore
from docqa_engine.protocols.embedder import Embedder
from docqa_engine.protocols.llm import LLMProvider
from docqa_engine.query.filters import FilterExtractor
from docqa_engine.query.router import IntentRouter
from docqa_engine.reasoning.client import ReasoningClient
from docqa_engine.reasoning.gemini_provider import GeminiProvider
from docqa_engine.reasoning.openai_provider import OpenAIProvider
from docqa_engine.reasoning.rate_limiter import RateLimiter
from docqa_engine.retrieval.ranker import HybridRanker
from docqa_engine.retrieval.retriever import ScopedRetriever
from docqa_engine.retrieval.scope import ScopeResolver
from docqa_engine.scoring.confidence import ConfidenceScorer
from docqa_engine.scoring.coverage import CoverageChecker
from docqa_engine.synthesis.synthesizer import GroundedSynthesizer

logger = get_logger("factory")


def build_providers(settings: Settings) -> tuple[LLMProvider, LLMProvider | None]:
    """Gemini primary and, when configured, the OpenAI alternate."""
    if not settings.google_api_key:
        raise ConfigurationError("DOCQA_GOOGLE_API_KEY is required for the primary provider")

    primary = GeminiProvider(api_key=settings.google_api_key, model=settings.gemini_model)
    fallback = None
    if settings.enable_fallback_provider and settings.openai_api_key:
        fallback = OpenAIProvider(
            api_key=settings.openai_api_key, model=settings.openai_fallback_model
        )
    return primary, fallback


def build_engine(
    settings: Settings,
    metadata_store: MetadataStore,
    chunk_index: ChunkIndex,
    link_store: LinkStore,
    *,
    embedder: Embedder | None = None,
    primary: LLMProvider | None = None,
    fallback: LLMProvider | None = None,
    rate_limiter: RateLimiter | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> QueryEngine:
    if not is_configured():
        setup_logging(settings.log_level, json=settings.log_json)

    if primary is None:
        primary, fallback = build_providers(settings)

    if embedder is None:
        if settings.openai_api_key:
            embedder = OpenAIEmbedder(
                api_key=settings.openai_api_key, model=settings.embedding_model
            )
        else:
            logger.warning("embedding_disabled", reason="no OpenAI API key")
            embedder = NullEmbedder()

    # Reasoning
    client = ReasoningClient(
        primary,
        rate_limiter or RateLimiter.from_settings(settings),
        settings,
        fallback=fallback,
        sleep=sleep,
    )

    # Scoring
    confidence_scorer = ConfidenceScorer(settings)
    coverage_checker = CoverageChecker(settings)

    # Retrieval
    ranker = HybridRanker(settings)
    retriever = ScopedRetriever(metadata_store, chunk_index, embedder, ranker, settings)
    scope_resolver = ScopeResolver(metadata_store, link_store)

    # Synthesis
    generator = AnswerGenerator(client, coverage_checker, confidence_scorer, settings)
    synthesizer = GroundedSynthesizer(
        generator, DocIntentClassifier(client), confidence_scorer, settings
    )

    logger.info(
        "engine_built",
        primary=primary.name,
        fallback=fallback.name if fallback else None,
    )
    return QueryEngine(
        router=IntentRouter(client, settings),
        filter_extractor=FilterExtractor(client),
        scope_resolver=scope_resolver,
        retriever=retriever,
        ranker=ranker,
        synthesizer=synthesizer,
        settings=settings,
    )
