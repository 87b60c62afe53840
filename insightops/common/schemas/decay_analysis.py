"""
Decay Analysis Schema

The persisted outcome of one decay analysis run. Created by the decay
engine; afterwards only the review fields change, and only through a
human review action.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..clock import utc_now


# ============================================================================
# Enums
# ============================================================================

class RiskLevel(str, Enum):
    """Risk classification derived from the confidence score"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReviewStatus(str, Enum):
    """Human review state of an analysis"""
    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"
    ACTIONED = "actioned"


# ============================================================================
# Sub-models
# ============================================================================

class Citation(BaseModel):
    """Pointer to the document or version that supports a decay reason"""
    document_id: str
    title: Optional[str] = None
    version_number: Optional[int] = None
    excerpt: Optional[str] = Field(default=None, description="Quoted statement, max ~200 chars")


# ============================================================================
# Main Schema
# ============================================================================

class DecayAnalysis(BaseModel):
    """Result of analyzing one document for decay."""
    id: str = Field(default_factory=lambda: f"dec_{uuid.uuid4().hex[:12]}")
    document_id: str
    document_title: Optional[str] = None

    decay_detected: bool = False
    confidence_score: float = Field(ge=0.0, le=1.0, default=0.0)
    risk_level: RiskLevel = RiskLevel.LOW
    decay_reasons: List[str] = Field(default_factory=list)
    what_changed_summary: str = ""
    update_recommendations: List[str] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)

    # Per-evaluator contribution; internal only, never exposed publicly
    confidence_breakdown: Dict[str, float] = Field(default_factory=dict)

    analyzed_at: datetime = Field(default_factory=utc_now)
    analyzed_by: str = "system"

    review_status: ReviewStatus = ReviewStatus.PENDING
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        """Serialize for callers outside the core (drops internal fields)."""
        return self.model_dump(mode="json", exclude={"confidence_breakdown"})
