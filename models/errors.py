"""
Exception hierarchy for the research-and-generation pipeline.

Fetch-side errors (SearchError, ScrapeError, CacheError) are recorded and
tolerated. DocumentGenerationError is fatal to article production and is kept
separate so callers can tell the two failure classes apart.
"""

from typing import Any

VALID_REASONS = {
    "timeout",
    "auth",
    "rate_limit",
    "bad_request",
    "provider_error",
    "empty_response",
    "navigation",
    "empty_extraction",
    "cancelled",
    "unknown",
}


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    kind = "pipeline_error"

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        cause: Exception | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if reason is not None and reason not in VALID_REASONS:
            reason = "unknown"
        self.reason = reason
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [self.message]
        if self.reason:
            parts.append(f" [{self.reason}]")
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {self.cause!s})")
        return "".join(parts)


class SearchError(PipelineError):
    """Search request failed (transport or parse)."""

    kind = "search_error"


class ScrapeError(PipelineError):
    """Page content retrieval failed (timeout, navigation, empty extraction)."""

    kind = "scrape_error"


class GenerationError(PipelineError):
    """Text completion failed (transport, rate limit, empty/invalid response)."""

    kind = "generation_error"


class CacheError(PipelineError):
    """Cache backend failed. Never fatal: callers fall back to a live fetch."""

    kind = "cache_error"


class CoordinationError(PipelineError):
    """Unrecoverable coordinator state, e.g. cancellation or reuse of a finished run."""

    kind = "coordination_error"


class DocumentGenerationError(PipelineError):
    """A document pipeline stage failed; no partial article is produced."""

    kind = "document_generation_error"

    def __init__(self, stage: str, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.stage = stage


def error_kind_of(error: BaseException) -> str:
    """Kind tag for any exception; foreign exceptions map to 'unknown'."""
    return getattr(error, "kind", "unknown")
