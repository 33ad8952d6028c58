"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""
    google_api_key: str = ""

    # Reasoning providers
    gemini_model: str = "gemini-2.0-flash"
    openai_fallback_model: str = "gpt-4o-mini"
    enable_fallback_provider: bool = True
    reasoning_temperature: float = 0.3
    reasoning_max_tokens: int = 2048
    reasoning_timeout_s: float = 30.0

    # Embedding
    embedding_model: str = "text-embedding-3-small"

    # Rate limiting (process-wide)
    rate_window_s: float = 60.0
    rate_max_requests: int = 15
    rate_max_concurrent: int = 5

    # Retry / provider backoff
    retry_max_attempts: int = 3  # retries after the first attempt
    retry_base_delay_s: float = 1.0
    retry_max_delay_s: float = 30.0
    default_backoff_s: float = 30.0

    # Conversation
    conversation_turns: int = 3

    # Evidence selection
    mmr_k: int = 6
    mmr_lambda: float = 0.7
    mmr_prefix_tokens: int = 60
    doc_chunk_pool: int = 12
    max_answer_docs: int = 3
    shortlist_top_chunks: int = 5
    focus_boost: float = 0.1

    # Vector search
    vector_match_count: int = 120
    vector_similarity_threshold: float = 0.3
    doc_vector_match_count: int = 60
    doc_vector_similarity_threshold: float = 0.22
    keyword_sweep_limit: int = 120

    # Listing
    list_limit: int = 10
    metadata_search_limit: int = 200

    # Coverage / confidence
    coverage_sentence_threshold: float = 0.15
    conf_coverage_weight: float = 0.5
    conf_similarity_weight: float = 0.5
    strict_coverage_threshold: float = 0.5
    max_citations: int = 6
    doc_citations: int = 3
    citation_snippet_chars: int = 500
    excerpt_chars: int = 240

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_file": ".env", "env_prefix": "DOCQA_"}
