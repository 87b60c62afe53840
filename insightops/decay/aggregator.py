"""
Confidence Aggregator

Fuses evaluator signals into one confidence score, a decay verdict and a
risk level. The risk level depends on the score alone.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from ..common.schemas import Citation, RiskLevel
from .signals import DecaySignal

HIGH_RISK = 0.7
MEDIUM_RISK = 0.4


def risk_level_for(score: float) -> RiskLevel:
    if score >= HIGH_RISK:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@dataclass
class AggregateResult:
    """Fused verdict across evaluators"""
    decay_detected: bool
    confidence_score: float
    risk_level: RiskLevel
    reasons: List[str] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    breakdown: Dict[str, float] = field(default_factory=dict)


class ConfidenceAggregator:
    """Weighted vote of detected signals, normalized by total weight."""

    def __init__(self, activation_threshold: float = 0.2):
        self._activation_threshold = activation_threshold

    @property
    def activation_threshold(self) -> float:
        return self._activation_threshold

    def aggregate(self, signals: List[DecaySignal]) -> AggregateResult:
        total_weight = sum(max(0.0, s.weight) for s in signals)
        raw = sum(max(0.0, s.contribution) for s in signals)
        score = round(raw / total_weight, 2) if total_weight > 0 else 0.0
        score = max(0.0, min(1.0, score))

        any_detected = any(s.detected for s in signals)
        reasons = [reason for s in signals if s.detected for reason in s.reasons]

        citations: List[Citation] = []
        seen = set()
        for signal in signals:
            if not signal.detected:
                continue
            for citation in signal.citations:
                key = (citation.document_id, citation.version_number)
                if key not in seen:
                    seen.add(key)
                    citations.append(citation)

        return AggregateResult(
            decay_detected=any_detected and score >= self._activation_threshold,
            confidence_score=score,
            risk_level=risk_level_for(score),
            reasons=reasons,
            citations=citations,
            breakdown={s.name: s.contribution for s in signals},
        )
