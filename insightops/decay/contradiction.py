"""
Contradiction Evaluator

Compares a document's statements against topically related sibling
documents (embedding similarity at or above a threshold) and against the
document's own previous version.
"""

import logging
from typing import List, Optional

from ..common.config import DecayConfig
from ..common.schemas import Citation, Document, DocumentVersion, sort_versions
from ..common.similarity import batch_cosine_similarity
from .signals import DecaySignal
from .statements import extract_statements, find_conflicts

logger = logging.getLogger("insightops.decay.contradiction")

NAME = "contradiction"


def previous_version(
    document: Document, versions: List[DocumentVersion]
) -> Optional[DocumentVersion]:
    """The newest version older than the document's current one."""
    ordered = sort_versions(versions)
    if not ordered:
        return None
    latest = max(document.current_version, ordered[0].version_number)
    for version in ordered:
        if version.version_number < latest:
            return version
    return None


def related_siblings(
    document: Document, siblings: List[Document], threshold: float
) -> List[Document]:
    """Siblings whose embedding is at least ``threshold`` similar to the document's."""
    if not document.has_embedding:
        return []

    candidates = [s for s in siblings if s.id != document.id]
    scores = batch_cosine_similarity(document.embedding, [s.embedding for s in candidates])

    related = []
    for sibling, score in zip(candidates, scores):
        if score is None:
            continue
        if score >= threshold:
            related.append(sibling)
    return related


class ContradictionEvaluator:
    """Conflicting statements on the same subject."""

    name = NAME

    def __init__(self, config: Optional[DecayConfig] = None):
        self._config = config or DecayConfig()

    @property
    def weight(self) -> float:
        return self._config.weights.get(NAME, 0.0)

    def evaluate(
        self,
        document: Document,
        versions: List[DocumentVersion],
        siblings: List[Document],
    ) -> DecaySignal:
        ours = extract_statements(document.content)
        reasons: List[str] = []
        citations: List[Citation] = []

        related = related_siblings(document, siblings, self._config.related_similarity_threshold)
        for sibling in related:
            for mine, theirs, kind in find_conflicts(ours, extract_statements(sibling.content)):
                reasons.append(
                    f'Conflicts with "{sibling.title}" on {mine.topic}: '
                    f'"{mine.excerpt}" vs "{theirs.excerpt}"'
                )
                citations.append(Citation(
                    document_id=sibling.id,
                    title=sibling.title,
                    version_number=sibling.current_version,
                    excerpt=theirs.excerpt,
                ))

        previous = previous_version(document, versions)
        if previous is not None:
            for mine, theirs, kind in find_conflicts(ours, extract_statements(previous.content)):
                reasons.append(
                    f"Statement on {mine.topic} contradicts version {previous.version_number}: "
                    f'"{theirs.excerpt}" is now "{mine.excerpt}"'
                )
                citations.append(Citation(
                    document_id=document.id,
                    title=document.title,
                    version_number=previous.version_number,
                    excerpt=theirs.excerpt,
                ))

        if reasons:
            logger.info("Document %s: %d conflicting statements", document.id, len(reasons))

        return DecaySignal(
            name=NAME,
            detected=bool(reasons),
            weight=self.weight,
            reasons=reasons,
            citations=citations,
            details={
                "related_documents": [s.id for s in related],
                "previous_version": previous.version_number if previous else None,
            },
        )
