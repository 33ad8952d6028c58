"""Resilient client for the external reasoning service.

Every call goes through the shared RateLimiter, is bounded by a timeout and
retried on transient failures. Throttling that outlasts the retries opens a backoff
window. Plain text generation falls back to one alternate provider when the
primary fails after a real attempt; structured calls never cross providers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from docqa_engine.config.settings import Settings
from docqa_engine.exceptions import (
    MalformedOutput,
    ProviderBackedOff,
    ProviderCallError,
    RateLimitExceeded,
    ReasoningError,
    TransientCallFailure,
)
from docqa_engine.models.domain import GenerationOutput
from docqa_engine.observability.logger import get_logger
from docqa_engine.protocols.llm import LLMProvider
from docqa_engine.reasoning.rate_limiter import RateLimiter
from docqa_engine.reasoning.retry import is_throttling, is_transient, parse_retry_delay

logger = get_logger("reasoning_client")

T = TypeVar("T")
InT = TypeVar("InT")
OutT = TypeVar("OutT", bound=BaseModel)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "reasoning_retry",
        attempt=retry_state.attempt_number,
        error=str(exc),
        wait_s=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
    )


class StructuredPrompt(Generic[InT, OutT]):
    """A named prompt: pure render function plus a declared output schema."""

    def __init__(
        self,
        client: ReasoningClient,
        name: str,
        render: Callable[[InT], str],
        output_schema: type[OutT],
        system: str | None = None,
    ) -> None:
        self._client = client
        self.name = name
        self._render = render
        self._output_schema = output_schema
        self._system = system

    async def __call__(self, payload: InT) -> OutT:
        prompt = self._render(payload)
        logger.debug("structured_prompt", name=self.name, prompt_len=len(prompt))
        return await self._client.generate_structured(
            prompt, self._output_schema, system=self._system
        )


class ReasoningClient:
    def __init__(
        self,
        primary: LLMProvider,
        rate_limiter: RateLimiter,
        settings: Settings,
        fallback: LLMProvider | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._limiter = rate_limiter
        self._settings = settings
        self._sleep = sleep
        self._timeout = settings.reasoning_timeout_s

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    def is_backed_off(self) -> bool:
        return self._limiter.is_backed_off()

    def can_make_request(self) -> bool:
        return self._limiter.can_make_request()

    def define_prompt(
        self,
        name: str,
        render: Callable[[InT], str],
        output_schema: type[OutT],
        system: str | None = None,
    ) -> StructuredPrompt[InT, OutT]:
        return StructuredPrompt(self, name, render, output_schema, system=system)

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        system: str | None = None,
    ) -> GenerationOutput:
        temperature = (
            self._settings.reasoning_temperature if temperature is None else temperature
        )
        max_tokens = self._settings.reasoning_max_tokens if max_tokens is None else max_tokens
        attempts = [0]

        async def call(provider: LLMProvider) -> str:
            return await provider.generate(
                prompt,
                system=system,
                temperature=temperature,
                max_tokens=max_tokens,
                model=model,
            )

        try:
            text = await self._run_primary(call, attempts)
            return GenerationOutput(text=text, provider=self._primary.name)
        except ReasoningError as primary_error:
            # Rate limit or backoff before any attempt went out: fail fast.
            if self._fallback is None or attempts[0] == 0:
                raise
            logger.warning(
                "primary_provider_failed",
                provider=self._primary.name,
                fallback=self._fallback.name,
                error=str(primary_error),
            )
            try:
                text = await asyncio.wait_for(
                    self._fallback.generate(
                        prompt, system=system, temperature=temperature, max_tokens=max_tokens
                    ),
                    timeout=self._timeout,
                )
            except Exception as fallback_error:
                logger.error(
                    "fallback_provider_failed",
                    provider=self._fallback.name,
                    error=str(fallback_error),
                )
                raise primary_error from fallback_error
            logger.info("fallback_provider_used", provider=self._fallback.name)
            return GenerationOutput(text=text, provider=self._fallback.name, fallback_used=True)

    async def generate_structured(
        self,
        prompt: str,
        response_schema: type[OutT],
        *,
        system: str | None = None,
    ) -> OutT:
        async def call(provider: LLMProvider) -> BaseModel:
            return await provider.generate_structured(prompt, response_schema, system=system)

        result = await self._run_primary(call, [0])
        if not isinstance(result, response_schema):
            raise MalformedOutput(
                f"Provider returned {type(result).__name__}, expected {response_schema.__name__}"
            )
        return result

    async def _run_primary(
        self, call: Callable[[LLMProvider], Awaitable[T]], attempts: list[int]
    ) -> T:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_transient),
            stop=stop_after_attempt(self._settings.retry_max_attempts + 1),
            wait=wait_random_exponential(
                multiplier=self._settings.retry_base_delay_s,
                max=self._settings.retry_max_delay_s,
            ),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return await retrying(self._attempt, call, attempts)
        except (RateLimitExceeded, ProviderBackedOff):
            raise
        except ReasoningError as e:
            # Throttling that outlasted every retry closes the provider for a while.
            if is_throttling(e):
                hint = e.retry_after if isinstance(e, ProviderCallError) else None
                delay = parse_retry_delay(hint)
                self._limiter.back_off_for(
                    delay if delay is not None else self._settings.default_backoff_s
                )
            raise

    async def _attempt(
        self, call: Callable[[LLMProvider], Awaitable[T]], attempts: list[int]
    ) -> T:
        # Recorded before the network call so failed attempts count too.
        self._limiter.acquire()
        attempts[0] += 1
        try:
            return await asyncio.wait_for(call(self._primary), timeout=self._timeout)
        except TimeoutError as e:
            raise TransientCallFailure(
                f"{self._primary.name} call timed out after {self._timeout}s"
            ) from e
        except ReasoningError:
            raise
        except Exception as e:
            raise ProviderCallError(f"{self._primary.name} call failed: {e}") from e
        finally:
            self._limiter.release()
