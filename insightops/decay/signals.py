"""Evaluator output shared by the decay pipeline."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..common.schemas import Citation


@dataclass
class DecaySignal:
    """One evaluator's verdict on one dimension of decay"""
    name: str
    detected: bool
    weight: float
    reasons: List[str] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def contribution(self) -> float:
        """Raw weighted contribution before normalization"""
        return self.weight if self.detected else 0.0
