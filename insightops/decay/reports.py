"""
Decay Reports

Human review of analyses and the summaries behind the decay dashboard.

Review workflow:
1. The engine persists every analysis as "pending"
2. A reviewer marks it reviewed, dismissed or actioned, with optional notes
3. Only the review fields change; the analysis itself is never rewritten
"""

import logging
from typing import Any, Dict, List, Optional

from ..common.clock import Clock, utc_now
from ..common.document_store import DocumentStore
from ..common.errors import InputError, NotFound
from ..common.schemas import DecayAnalysis, ReviewStatus, RiskLevel

logger = logging.getLogger("insightops.decay.reports")

VALID_REVIEW_STATUSES = [s.value for s in ReviewStatus]
VALID_RISK_LEVELS = [r.value for r in RiskLevel]


def review_analysis(
    store: DocumentStore,
    analysis_id: str,
    review_status: str,
    reviewed_by: str,
    review_notes: Optional[str] = None,
    clock: Clock = utc_now,
) -> DecayAnalysis:
    """
    Record a human review decision.

    Raises:
        InputError: If the status is not one of pending/reviewed/dismissed/actioned
        NotFound: If the analysis does not exist
    """
    if review_status not in VALID_REVIEW_STATUSES:
        raise InputError(
            f"Invalid review status: {review_status!r}. "
            f"Must be one of: {', '.join(VALID_REVIEW_STATUSES)}"
        )
    if not analysis_id:
        raise InputError("analysis_id is required")

    analysis = store.get_decay_analysis(analysis_id)
    if analysis is None:
        raise NotFound(f"Decay analysis not found: {analysis_id}")

    updated = analysis.model_copy(update={
        "review_status": ReviewStatus(review_status),
        "reviewed_by": reviewed_by,
        "review_notes": review_notes,
        "reviewed_at": clock(),
    })
    store.update_decay_analysis(updated)

    logger.info("Analysis %s marked %s by %s", analysis_id, review_status, reviewed_by)
    return updated


def latest_per_document(analyses: List[DecayAnalysis]) -> List[DecayAnalysis]:
    """Newest analysis for each document, newest first."""
    latest: Dict[str, DecayAnalysis] = {}
    for analysis in sorted(analyses, key=lambda a: a.analyzed_at, reverse=True):
        latest.setdefault(analysis.document_id, analysis)
    return list(latest.values())


def latest_report(store: DocumentStore, document_id: str) -> DecayAnalysis:
    """
    Most recent analysis of one document.

    Raises:
        InputError: If document_id is blank
        NotFound: If the document has never been analyzed
    """
    if not document_id or not document_id.strip():
        raise InputError("document_id is required")

    analyses = latest_per_document(store.list_decay_analyses(document_id))
    if not analyses:
        raise NotFound(f"No decay report for document: {document_id}")
    return analyses[0]


def filter_reports(
    analyses: List[DecayAnalysis],
    document_id: Optional[str] = None,
    decay_detected: Optional[bool] = None,
    risk_level: Optional[str] = None,
    review_status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[DecayAnalysis]:
    """Filter and page analyses, newest first."""
    if risk_level is not None and risk_level not in VALID_RISK_LEVELS:
        raise InputError(f"Invalid risk level: {risk_level!r}. Must be one of: {', '.join(VALID_RISK_LEVELS)}")
    if review_status is not None and review_status not in VALID_REVIEW_STATUSES:
        raise InputError(
            f"Invalid review status: {review_status!r}. "
            f"Must be one of: {', '.join(VALID_REVIEW_STATUSES)}"
        )

    results = sorted(analyses, key=lambda a: a.analyzed_at, reverse=True)
    if document_id is not None:
        results = [a for a in results if a.document_id == document_id]
    if decay_detected is not None:
        results = [a for a in results if a.decay_detected == decay_detected]
    if risk_level is not None:
        results = [a for a in results if a.risk_level.value == risk_level]
    if review_status is not None:
        results = [a for a in results if a.review_status.value == review_status]
    offset = max(0, offset)
    return results[offset: offset + max(0, limit)]


def summarize(analyses: List[DecayAnalysis], total_documents: int) -> Dict[str, Any]:
    """
    Dashboard summary over the latest analysis of each document.

    With nothing analyzed yet every document counts as low risk and the
    average confidence is 1.0.
    """
    latest = latest_per_document(analyses)

    by_risk = {level.value: 0 for level in RiskLevel}
    by_review = {status.value: 0 for status in ReviewStatus}
    for analysis in latest:
        by_risk[analysis.risk_level.value] += 1
        by_review[analysis.review_status.value] += 1

    if not latest:
        by_risk[RiskLevel.LOW.value] = total_documents
        average = 1.0
    else:
        average = round(sum(a.confidence_score for a in latest) / len(latest), 2)

    return {
        "totalDocuments": total_documents,
        "analyzedDocuments": len(latest),
        "decayDetected": sum(1 for a in latest if a.decay_detected),
        "byRiskLevel": by_risk,
        "byReviewStatus": by_review,
        "averageConfidence": average,
    }
