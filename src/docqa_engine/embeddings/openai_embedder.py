"""OpenAI embedding provider using text-embedding-3-small."""

from __future__ import annotations

from openai import AsyncOpenAI

from docqa_engine.observability.logger import get_logger

logger = get_logger("embeddings")


class OpenAIEmbedder:
    """Embeds query text. Failures return None so callers take the lexical path."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def embed(self, text: str) -> list[float] | None:
        if not text or not text.strip():
            return None
        try:
            response = await self._client.embeddings.create(input=[text], model=self._model)
            return response.data[0].embedding
        except Exception as e:
            logger.warning("embedding_failed", model=self._model, error=str(e))
            return None
