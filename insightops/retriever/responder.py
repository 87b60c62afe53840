"""
Responder

Question answering over a workspace with caching and failure containment.

Flow for ask_question:
    breaker open      → basic answer + quota_exceeded (no provider call)
    cache hit         → cached answer + cached
    no context        → "no relevant documents", confidence 0
    no provider       → basic answer + basic_mode
    provider success  → AI answer (+ stale_source warnings), cached
    quota failure     → trip breaker, basic answer + quota_exceeded
    other failure     → basic answer + ai_error

Provider failures never surface to the caller: there is always a
deterministic answer built from the top retrieval match.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..common.clock import Clock, days_between, ensure_utc, utc_now
from ..common.errors import EmptyAnswer, InputError, QuotaExceeded
from ..common.llm_utils import decode_answer
from ..common.schemas import Document
from .answer_cache import AnswerCache
from .circuit_breaker import CircuitBreaker
from .context_builder import BuiltContext, ContextBuilder, SourceRef
from .gateway import ProviderGateway

logger = logging.getLogger("insightops.retriever.responder")


SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer based ONLY on the provided context. "
    'Return JSON: { "answer": "...", "confidence": 0.0-1.0 }'
)

USER_PROMPT = """Context:
{context}

Question: {question}"""

NO_CONTEXT_ANSWER = (
    "I couldn't find any relevant documents in your workspace to answer this question. "
    "Please upload some documents first."
)
NO_SOURCES_ANSWER = "No relevant documents found."

MIN_ANSWER_CHARS = 5

# Warning types
BASIC_MODE = "basic_mode"
QUOTA_EXCEEDED = "quota_exceeded"
AI_ERROR = "ai_error"
CACHED = "cached"
STALE_SOURCE = "stale_source"

WARNING_MESSAGES = {
    BASIC_MODE: "AI features not configured. Showing document excerpts only.",
    "cooldown": "AI quota exceeded. Returning basic results (cooldown active).",
    QUOTA_EXCEEDED: "AI usage limit reached. Showing basic results only.",
    AI_ERROR: "AI service unavailable. Showing raw results.",
    CACHED: "⚡ Instant response (Cached)",
}


@dataclass
class AnswerWarning:
    """A caller-visible note about how an answer was produced"""
    type: str
    message: str
    document_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "message": self.message}
        if self.document_id is not None:
            data["documentId"] = self.document_id
        return data


@dataclass
class AnswerResult:
    """Answer to one question"""
    answer: str
    confidence: float
    sources: List[SourceRef] = field(default_factory=list)
    warnings: List[AnswerWarning] = field(default_factory=list)

    def has_warning(self, warning_type: str) -> bool:
        return any(w.type == warning_type for w in self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "confidence": self.confidence,
            "sources": [s.to_dict() for s in self.sources],
            "warnings": [w.to_dict() for w in self.warnings],
        }


class Responder:
    """
    Orchestrates retrieval, caching and the chat provider.

    The cache and breaker are owned by the caller and injected, so several
    responders can share them (or tests can drive them with a fake clock).
    """

    def __init__(
        self,
        context_builder: ContextBuilder,
        gateway: ProviderGateway,
        cache: Optional[AnswerCache] = None,
        breaker: Optional[CircuitBreaker] = None,
        clock: Clock = utc_now,
        stale_after_days: int = 30,
        max_sources: int = 3,
    ):
        self._context_builder = context_builder
        self._gateway = gateway
        self._cache = cache if cache is not None else AnswerCache(clock=clock)
        self._breaker = breaker if breaker is not None else CircuitBreaker(clock=clock)
        self._clock = clock
        self._stale_after_days = stale_after_days
        self._max_sources = max_sources

    @property
    def cache(self) -> AnswerCache:
        return self._cache

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def is_ai_available(self) -> bool:
        """True iff a provider is configured and the breaker is closed."""
        return self._gateway.is_configured and not self._breaker.is_open()

    def on_document_changed(self, document: Document) -> None:
        """Store change listener: cached answers for the workspace are now stale."""
        self._cache.invalidate_workspace(document.workspace_id)

    async def ask_question(self, question: str, workspace_id: str) -> AnswerResult:
        """
        Answer a question from a workspace's documents.

        Raises:
            InputError: If question or workspace_id is missing
        """
        if not question or not question.strip():
            raise InputError("question is required")
        if not workspace_id or not workspace_id.strip():
            raise InputError("workspace_id is required")

        if self._breaker.is_open():
            built = await self._context_builder.build_context(question, workspace_id)
            return self._basic_answer(built, QUOTA_EXCEEDED, WARNING_MESSAGES["cooldown"])

        cached = self._cache.get(workspace_id, question)
        if cached is not None:
            logger.info("Cache hit for workspace %s", workspace_id)
            return replace(
                cached,
                sources=list(cached.sources),
                warnings=list(cached.warnings) + [AnswerWarning(CACHED, WARNING_MESSAGES[CACHED])],
            )

        built = await self._context_builder.build_context(question, workspace_id)
        if built.is_empty:
            return AnswerResult(answer=NO_CONTEXT_ANSWER, confidence=0.0)

        if not self._gateway.is_configured:
            return self._basic_answer(built, BASIC_MODE, WARNING_MESSAGES[BASIC_MODE])

        try:
            raw = await self._gateway.complete(
                SYSTEM_PROMPT,
                USER_PROMPT.format(context=built.context, question=question),
            )
            answer, confidence = decode_answer(raw)
            if len(answer.strip()) < MIN_ANSWER_CHARS:
                raise EmptyAnswer("AI returned empty or too-short answer", provider=self._gateway.provider)
        except QuotaExceeded as e:
            logger.warning("AI quota exceeded, tripping circuit breaker: %s", e)
            self._breaker.trip()
            return self._basic_answer(built, QUOTA_EXCEEDED, WARNING_MESSAGES[QUOTA_EXCEEDED])
        except Exception as e:
            logger.warning("AI provider failed, falling back to basic answer: %s", e)
            return self._basic_answer(built, AI_ERROR, WARNING_MESSAGES[AI_ERROR])

        sources = built.sources[: self._max_sources]
        result = AnswerResult(
            answer=answer,
            confidence=confidence,
            sources=sources,
            warnings=self._stale_warnings(sources),
        )
        self._cache.put(workspace_id, question, result)
        return result

    def _basic_answer(self, built: BuiltContext, warning_type: str, message: str) -> AnswerResult:
        """Deterministic answer from the top-ranked match; no AI call."""
        warnings = [AnswerWarning(warning_type, message)]
        if not built.sources:
            return AnswerResult(answer=NO_SOURCES_ANSWER, confidence=0.0, warnings=warnings)

        top_source = built.sources[0]
        excerpt = built.matches[0].excerpt if built.matches else ""
        answer = (
            f'Based on "{top_source.title}", here\'s relevant information: '
            f"{excerpt or 'See the document for details.'}"
        )
        return AnswerResult(
            answer=answer,
            confidence=top_source.similarity,
            sources=built.sources[: self._max_sources],
            warnings=warnings,
        )

    def _stale_warnings(self, sources: List[SourceRef]) -> List[AnswerWarning]:
        now = ensure_utc(self._clock())
        stale_after = timedelta(days=self._stale_after_days)
        warnings = []
        for source in sources:
            if now - ensure_utc(source.updated_at) > stale_after:
                age_days = days_between(source.updated_at, now)
                warnings.append(AnswerWarning(
                    STALE_SOURCE,
                    f'"{source.title}" was last updated {age_days} days ago',
                    document_id=source.document_id,
                ))
        return warnings
