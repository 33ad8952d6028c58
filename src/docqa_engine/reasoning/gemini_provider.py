"""Google Gemini reasoning provider using the google-genai SDK."""

from __future__ import annotations

from google import genai
from google.genai import errors, types
from pydantic import BaseModel

from docqa_engine.exceptions import ProviderCallError
from docqa_engine.observability.logger import get_logger
from docqa_engine.reasoning.retry import parse_structured_output

logger = get_logger("gemini")

_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"


def retry_delay_from_details(details: object) -> str | None:
    """Find RetryInfo.retryDelay in a Gemini error payload, e.g. ``"18s"``."""
    if isinstance(details, dict):
        if "error" in details:
            return retry_delay_from_details(details["error"])
        return retry_delay_from_details(details.get("details"))
    if isinstance(details, list):
        for item in details:
            if isinstance(item, dict) and item.get("@type") == _RETRY_INFO_TYPE:
                delay = item.get("retryDelay")
                return str(delay) if delay is not None else None
    return None


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash") -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2048,
        model: str | None = None,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
        if system:
            config.system_instruction = system
        response = await self._call(model or self._model, prompt, config)
        return response.text or ""

    async def generate_structured(
        self,
        prompt: str,
        response_schema: type[BaseModel],
        system: str | None = None,
    ) -> BaseModel:
        config = types.GenerateContentConfig(
            temperature=0.0,
            response_mime_type="application/json",
            response_schema=response_schema,
        )
        if system:
            config.system_instruction = system
        response = await self._call(self._model, prompt, config)
        return parse_structured_output(response.text, response_schema)

    async def _call(
        self, model: str, prompt: str, config: types.GenerateContentConfig
    ) -> types.GenerateContentResponse:
        try:
            return await self._client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=config,
            )
        except errors.APIError as e:
            retry_after = retry_delay_from_details(e.details) if e.code == 429 else None
            logger.warning("gemini_api_error", code=e.code, retry_after=retry_after)
            raise ProviderCallError(
                f"Gemini generation failed: {e}", status_code=e.code, retry_after=retry_after
            ) from e
        except Exception as e:
            raise ProviderCallError(f"Gemini generation failed: {e}") from e
