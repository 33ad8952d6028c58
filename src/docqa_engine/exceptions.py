"""Custom exception hierarchy for the document QA engine."""

from __future__ import annotations


class DocQAEngineError(Exception):
    """Base exception for all document QA engine errors."""


class ConfigurationError(DocQAEngineError):
    """Error in system configuration."""


class ReasoningError(DocQAEngineError):
    """Error raised by the reasoning client or one of its providers."""


class RateLimitExceeded(ReasoningError):
    """The request window or the in-flight ceiling is exhausted."""


class ProviderBackedOff(ReasoningError):
    """The provider signalled throttling and the backoff window is still open."""


class MalformedOutput(ReasoningError):
    """A structured response failed schema validation."""


class TransientCallFailure(ReasoningError):
    """Network, timeout or server-side failure that may succeed on retry."""


class ProviderCallError(ReasoningError):
    """A provider rejected the call.

    ``status_code`` carries the HTTP-ish status when the SDK exposes one and
    ``retry_after`` the raw retry hint (``"18s"``, ``"500ms"``) on throttling.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class RetrievalError(DocQAEngineError):
    """Error during retrieval."""
