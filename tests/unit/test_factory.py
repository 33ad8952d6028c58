"""Tests for engine wiring."""

import pytest

from conftest import no_sleep
from docqa_engine.config.settings import Settings
from docqa_engine.embeddings.null_embedder import NullEmbedder
from docqa_engine.exceptions import ConfigurationError
from docqa_engine.factory import build_engine, build_providers
from docqa_engine.pipeline.query_pipeline import QueryEngine


def test_missing_google_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        build_providers(Settings(google_api_key="", openai_api_key="k"))


def test_fallback_needs_openai_key():
    primary, fallback = build_providers(Settings(google_api_key="g", openai_api_key=""))
    assert primary.name == "gemini"
    assert fallback is None


def test_fallback_configured():
    _, fallback = build_providers(Settings(google_api_key="g", openai_api_key="o"))
    assert fallback.name == "openai"


def test_without_openai_key_retrieval_is_lexical(store, provider, rate_limiter):
    engine = build_engine(
        Settings(google_api_key="g", openai_api_key=""),
        store, store, store,
        primary=provider, rate_limiter=rate_limiter, sleep=no_sleep,
    )
    assert isinstance(engine, QueryEngine)
    assert isinstance(engine._retriever._embedder, NullEmbedder)
