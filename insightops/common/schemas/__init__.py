"""
InsightOps Schemas

Persisted records: documents, versions and decay analyses.
"""

from .documents import Document, DocumentVersion, sort_versions
from .decay_analysis import (
    Citation,
    DecayAnalysis,
    ReviewStatus,
    RiskLevel,
)

__all__ = [
    "Document",
    "DocumentVersion",
    "sort_versions",
    "Citation",
    "DecayAnalysis",
    "ReviewStatus",
    "RiskLevel",
]
