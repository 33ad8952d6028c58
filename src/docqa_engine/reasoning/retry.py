"""Failure classification for reasoning calls."""

from __future__ import annotations

import json
import re

from pydantic import BaseModel, ValidationError

from docqa_engine.exceptions import (
    MalformedOutput,
    ProviderBackedOff,
    ProviderCallError,
    RateLimitExceeded,
    TransientCallFailure,
)

_RETRY_DELAY_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(s|ms)?$")
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

THROTTLING_MARKERS = ("rate limit", "too many requests", "resource_exhausted", "quota")
TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "econnreset",
    "temporarily unavailable",
    "service unavailable",
)


def parse_retry_delay(hint: str | float | int | None) -> float | None:
    """Parse a retry-after hint into seconds.

    Accepts ``"18s"``, ``"500ms"`` and bare numbers (seconds).
    """
    if hint is None:
        return None
    if isinstance(hint, (int, float)):
        return float(hint) if hint >= 0 else None
    match = _RETRY_DELAY_RE.match(hint.strip().lower())
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2) == "ms":
        return value / 1000
    return value


def is_throttling(exc: BaseException) -> bool:
    if isinstance(exc, ProviderCallError):
        if exc.status_code == 429:
            return True
        if exc.status_code is not None:
            return False
    message = str(exc).lower()
    return any(marker in message for marker in THROTTLING_MARKERS)


def is_transient(exc: BaseException) -> bool:
    """Retry predicate: network errors, timeouts, 5xx and throttling."""
    if isinstance(exc, (RateLimitExceeded, ProviderBackedOff, MalformedOutput)):
        return False
    if isinstance(exc, (TransientCallFailure, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, ProviderCallError):
        code = exc.status_code
        if code is not None:
            return code in (408, 429) or code >= 500
        message = str(exc).lower()
        return is_throttling(exc) or any(m in message for m in TRANSIENT_MARKERS)
    return False


def parse_structured_output(raw: str | None, schema: type[BaseModel]) -> BaseModel:
    """Validate provider JSON against ``schema`` or raise MalformedOutput."""
    if not raw or not raw.strip():
        raise MalformedOutput(f"Empty response for {schema.__name__}")
    text = _CODE_FENCE_RE.sub("", raw.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedOutput(f"Response for {schema.__name__} is not JSON: {e}") from e
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise MalformedOutput(f"Response failed {schema.__name__} validation: {e}") from e
