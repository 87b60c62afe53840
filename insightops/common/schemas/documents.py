"""
Document Schemas

Documents and their immutable versions, as owned by the document store.
The embedding is recomputed by the store's writer whenever content changes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..clock import utc_now


class DocumentVersion(BaseModel):
    """One immutable revision of a document's content."""
    document_id: str
    version_number: int = Field(..., ge=1)
    content: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class Document(BaseModel):
    """
    A workspace document.

    Lightweight listings leave ``content`` empty; the retriever re-fetches
    content only for ranked winners.
    """
    id: str
    workspace_id: str
    title: str = "Untitled"
    type: str = Field(default="other", description="policy, procedure, faq, report, ...")
    content: str = ""
    embedding: Optional[List[float]] = None
    current_version: int = Field(default=1, ge=1)
    author: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


def sort_versions(versions: List[DocumentVersion]) -> List[DocumentVersion]:
    """Order versions newest-first by version number."""
    return sorted(versions, key=lambda v: v.version_number, reverse=True)
