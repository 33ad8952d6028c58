"""OpenAI chat-completions provider, used as the alternate reasoning vendor."""

from __future__ import annotations

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from docqa_engine.exceptions import ProviderCallError, TransientCallFailure
from docqa_engine.observability.logger import get_logger
from docqa_engine.reasoning.retry import parse_structured_output

logger = get_logger("openai_provider")


class OpenAIProvider:
    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2048,
        model: str | None = None,
    ) -> str:
        response = await self._complete(
            self._messages(prompt, system),
            model=model or self._model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def generate_structured(
        self,
        prompt: str,
        response_schema: type[BaseModel],
        system: str | None = None,
    ) -> BaseModel:
        response = await self._complete(
            self._messages(prompt, system),
            model=self._model,
            temperature=0.0,
            response_format={"type": "json_object"},
        )
        return parse_structured_output(response.choices[0].message.content, response_schema)

    @staticmethod
    def _messages(prompt: str, system: str | None) -> list[dict]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def _complete(self, messages: list[dict], **kwargs):
        try:
            return await self._client.chat.completions.create(messages=messages, **kwargs)
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise TransientCallFailure(f"OpenAI request failed: {e}") from e
        except openai.APIStatusError as e:
            retry_after = e.response.headers.get("retry-after") if e.status_code == 429 else None
            logger.warning("openai_api_error", code=e.status_code, retry_after=retry_after)
            raise ProviderCallError(
                f"OpenAI request failed: {e}",
                status_code=e.status_code,
                retry_after=retry_after,
            ) from e
