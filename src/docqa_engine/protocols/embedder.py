"""Protocol for embedding providers."""

from __future__ import annotations

from typing import Protocol


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float] | None:
        """Return the embedding, or None when embeddings are unavailable."""
        ...
