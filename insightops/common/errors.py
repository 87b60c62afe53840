"""
Exception hierarchy for InsightOps.

All domain errors derive from :class:`InsightOpsError` so callers can catch
the whole family with one clause::

    try:
        result = await responder.ask_question(question, workspace_id)
    except InsightOpsError as e:
        logger.error("InsightOps error: %s", e)

Recovery policy per error:
- InputError, NotFound: fatal, surfaced before any retrieval
- DimensionMismatch: fatal for one comparison only
- QuotaExceeded: recovered via the global cooldown, never retried inline
- ProviderError: recovered by degrading to a basic answer
- ParseError: recovered by using the raw provider text
- PersistenceError: fatal for single-document analysis, isolated in batches
"""

from typing import Optional


class InsightOpsError(Exception):
    """Base exception for all InsightOps errors."""


class InputError(InsightOpsError):
    """A required identifier or argument is missing or invalid."""


class NotFound(InsightOpsError):
    """A referenced document or analysis does not exist."""


class DimensionMismatch(InsightOpsError, ValueError):
    """Two embedding vectors have different lengths."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimension mismatch: {left} vs {right}")
        self.left = left
        self.right = right


class ExternalTimeout(InsightOpsError):
    """An external call (embedding, provider, store) exceeded its time budget."""


# ── Provider ─────────────────────────────────────────────────


class ProviderError(InsightOpsError):
    """Chat provider call failed (network, auth, bad response)."""

    def __init__(self, message: str, *, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class QuotaExceeded(ProviderError):
    """Chat provider answered with a rate-limit status (HTTP 429)."""


class ProviderTimeout(ProviderError):
    """Chat provider did not answer within the configured timeout."""


class EmptyAnswer(ProviderError):
    """Chat provider returned a blank or too-short answer."""


class ParseError(InsightOpsError):
    """A provider response could not be decoded as structured output."""


# ── Persistence ──────────────────────────────────────────────


class PersistenceError(InsightOpsError):
    """The document store failed to read or write a record."""
