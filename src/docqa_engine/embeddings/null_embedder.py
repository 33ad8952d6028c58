"""Embedder used when no embedding provider is configured."""

from __future__ import annotations


class NullEmbedder:
    """Always reports the embedding as unavailable, forcing lexical retrieval."""

    async def embed(self, text: str) -> list[float] | None:
        return None
