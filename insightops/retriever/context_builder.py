"""
Context Builder

Turns ranked matches into the bounded context string sent to the chat
provider, plus the source list returned to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from .searcher import RetrievalMatch, Searcher


@dataclass
class SourceRef:
    """A source as shown to the caller"""
    document_id: str
    title: str
    type: str
    similarity: float  # rounded to 2 decimals
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documentId": self.document_id,
            "title": self.title,
            "type": self.type,
            "similarity": self.similarity,
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class BuiltContext:
    """Context string and sources in rank order"""
    context: str = ""
    sources: List[SourceRef] = field(default_factory=list)
    matches: List[RetrievalMatch] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.context or not self.sources


def to_source(match: RetrievalMatch) -> SourceRef:
    return SourceRef(
        document_id=match.document_id,
        title=match.title,
        type=match.type,
        similarity=round(match.similarity, 2),
        updated_at=match.updated_at,
    )


def format_context(matches: List[RetrievalMatch], char_budget: int = 6000) -> str:
    """Join ``[Source i: title]`` blocks and cut the whole string to the budget."""
    blocks = [
        f"[Source {i}: {match.title}]\n{match.excerpt}"
        for i, match in enumerate(matches, start=1)
    ]
    return "\n\n".join(blocks)[:char_budget]


class ContextBuilder:
    """Builds provider context from the top-k retrieval matches."""

    def __init__(self, searcher: Searcher, topk: int = 5, char_budget: int = 6000):
        self._searcher = searcher
        self._topk = topk
        self._char_budget = char_budget

    async def build_context(self, question: str, workspace_id: str) -> BuiltContext:
        matches = await self._searcher.search(question, workspace_id, topk=self._topk)
        if not matches:
            return BuiltContext()

        return BuiltContext(
            context=format_context(matches, self._char_budget),
            sources=[to_source(m) for m in matches],
            matches=matches,
        )
