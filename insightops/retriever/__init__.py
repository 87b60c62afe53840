"""
Retriever - Workspace Question Answering

Ranks workspace documents against a question and answers from them,
degrading to deterministic answers when the AI provider is unavailable.

Key Components:
- Searcher: two-phase embedding search over a workspace
- ContextBuilder: bounded context string + source list
- ProviderGateway: one chat backend chosen from configuration
- CircuitBreaker / AnswerCache: cooldown and memoization state
- Responder: the question-answering state machine

Pipeline:
1. Embed the question and rank workspace documents
2. Build context from the top matches
3. Ask the configured provider (unless cached or in cooldown)
4. Fall back to a basic answer on any provider failure
"""

from .answer_cache import AnswerCache
from .circuit_breaker import CircuitBreaker
from .context_builder import BuiltContext, ContextBuilder, SourceRef
from .gateway import ProviderGateway, build_backend
from .responder import AnswerResult, AnswerWarning, Responder
from .searcher import RetrievalMatch, Searcher

__all__ = [
    "AnswerCache",
    "CircuitBreaker",
    "BuiltContext",
    "ContextBuilder",
    "SourceRef",
    "ProviderGateway",
    "build_backend",
    "AnswerResult",
    "AnswerWarning",
    "Responder",
    "RetrievalMatch",
    "Searcher",
]
