"""Shared fakes and fixtures data for InsightOps tests."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from insightops.common.schemas import Document, DocumentVersion

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

POLICY_V1 = """REMOTE WORK POLICY (2025)

1. Work Days: Employees are expected to be in the office 3 days a week.
2. Core Hours: 10 AM to 4 PM.
3. Equipment: The company provides a laptop and a monitor.

Effectiveness: This policy is valid starting Jan 1, 2025.
"""

POLICY_V2 = """REMOTE WORK POLICY (2026 UPDATE)

1. Work Days: Employees are now fully remote allowed! No office days required.
2. Core Hours: Flexible.
3. Equipment: $500 stipend provided.

Effectiveness: This policy updates all previous agreements starting Jan 1, 2026.
"""


class FakeClock:
    """Settable clock; call it to read the current time."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeEmbedding:
    """Returns fixed vectors per text; counts calls."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.calls = 0

    def embed_single(self, text: str) -> List[float]:
        self.calls += 1
        return self.vectors.get(text, self.default)



def make_document(
    doc_id: str,
    workspace_id: str = "ws1",
    title: Optional[str] = None,
    content: str = "",
    embedding: Optional[List[float]] = None,
    doc_type: str = "policy",
    updated_at: datetime = NOW,
    current_version: int = 1,
) -> Document:
    return Document(
        id=doc_id,
        workspace_id=workspace_id,
        title=title or doc_id.title(),
        type=doc_type,
        content=content,
        embedding=embedding,
        updated_at=updated_at,
        current_version=current_version,
    )


def make_policy(doc_id: str = "policy", embedding: Optional[List[float]] = None):
    """The two-version remote work policy: (document, [v2, v1])."""
    document = make_document(
        doc_id,
        title="Remote Work Policy",
        content=POLICY_V2,
        embedding=embedding,
        current_version=2,
    )
    versions = [
        DocumentVersion(document_id=doc_id, version_number=2, content=POLICY_V2,
                        created_at=NOW - timedelta(days=1)),
        DocumentVersion(document_id=doc_id, version_number=1, content=POLICY_V1,
                        created_at=NOW - timedelta(days=400)),
    ]
    return document, versions
