"""Tests for environment-driven settings."""

from docqa_engine.config.settings import Settings


def test_defaults():
    settings = Settings()
    assert settings.rate_max_requests == 15
    assert settings.rate_window_s == 60.0
    assert settings.max_answer_docs == 3
    assert settings.strict_coverage_threshold == 0.5


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("DOCQA_RATE_MAX_REQUESTS", "40")
    monkeypatch.setenv("DOCQA_ENABLE_FALLBACK_PROVIDER", "false")
    settings = Settings()
    assert settings.rate_max_requests == 40
    assert settings.enable_fallback_provider is False


def test_unprefixed_env_is_ignored(monkeypatch):
    monkeypatch.setenv("RATE_MAX_REQUESTS", "99")
    assert Settings().rate_max_requests == 15
