"""
Decay - Document Decay Detection

Scores how far a document has drifted from being a trustworthy source.

Key Components:
- FreshnessEvaluator: age vs. expected validity, declared expiry dates
- ContradictionEvaluator: conflicts with related documents and the previous version
- VersionDriftEvaluator: size and direction of the latest revision
- ConfidenceAggregator: weighted fusion into score, verdict and risk level
- DecayOrchestrator: single-document and batch analysis with persistence
"""

from .aggregator import AggregateResult, ConfidenceAggregator, risk_level_for
from .contradiction import ContradictionEvaluator
from .engine import BatchItemError, DecayOrchestrator
from .freshness import FreshnessEvaluator
from .reports import filter_reports, latest_per_document, latest_report, review_analysis, summarize
from .signals import DecaySignal
from .version_drift import VersionDriftEvaluator

__all__ = [
    "AggregateResult",
    "ConfidenceAggregator",
    "risk_level_for",
    "ContradictionEvaluator",
    "BatchItemError",
    "DecayOrchestrator",
    "FreshnessEvaluator",
    "filter_reports",
    "latest_per_document",
    "latest_report",
    "review_analysis",
    "summarize",
    "DecaySignal",
    "VersionDriftEvaluator",
]
