"""
Searcher

Ranks a workspace's documents against a query by embedding similarity.

Two round trips to the store:
1. lightweight listing (id, title, type, embedding, updated_at) for scoring
2. full content only for the ranked winners, to build excerpts
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ..common.document_store import LIGHTWEIGHT_FIELDS, DocumentStore
from ..common.embedding_service import EmbeddingProvider
from ..common.errors import DimensionMismatch, InputError
from ..common.similarity import cosine_similarity
from ..common.timeouts import run_with_timeout

logger = logging.getLogger("insightops.retriever.searcher")


@dataclass
class RetrievalMatch:
    """A single ranked document for a query"""
    document_id: str
    title: str
    type: str
    similarity: float
    updated_at: datetime
    excerpt: str = ""


def make_excerpt(content: str, limit: int = 300) -> str:
    return (content or "")[:limit] + "..."


class Searcher:
    """
    Semantic search over one workspace.

    Documents without an embedding, or whose embedding length differs from
    the query's, are excluded from ranking rather than scored as zero.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: EmbeddingProvider,
        min_similarity: float = 0.1,
        excerpt_chars: int = 300,
        embed_timeout: Optional[float] = 15.0,
        store_timeout: Optional[float] = 10.0,
    ):
        """
        Initialize searcher.

        Args:
            store: Document store to rank against
            embedding_service: For embedding queries
            min_similarity: Matches must score strictly above this
            excerpt_chars: Excerpt length taken from each winner's content
        """
        self._store = store
        self._embedding = embedding_service
        self._min_similarity = min_similarity
        self._excerpt_chars = excerpt_chars
        self._embed_timeout = embed_timeout
        self._store_timeout = store_timeout

    async def search(
        self,
        query: str,
        workspace_id: str,
        topk: int = 5,
    ) -> List[RetrievalMatch]:
        """
        Search for the documents most relevant to ``query``.

        Returns:
            At most ``topk`` matches, similarity descending, each strictly
            above the minimum similarity. Ties keep store listing order.

        Raises:
            InputError: If workspace_id is missing
        """
        if not workspace_id or not workspace_id.strip():
            raise InputError("workspace_id is required")
        if not query or not query.strip() or topk <= 0:
            return []

        query_embedding = await run_with_timeout(
            self._embedding.embed_single, query,
            timeout=self._embed_timeout, label="query embedding",
        )

        documents = await run_with_timeout(
            self._store.list_workspace_documents, workspace_id, LIGHTWEIGHT_FIELDS,
            timeout=self._store_timeout, label="workspace listing",
        )
        if not documents:
            return []

        scored = []
        for doc in documents:
            if not doc.has_embedding:
                continue
            try:
                score = cosine_similarity(query_embedding, doc.embedding)
            except DimensionMismatch as e:
                logger.warning("Skipping document %s: %s", doc.id, e)
                continue
            if score > self._min_similarity:
                scored.append((score, doc))

        # sort() is stable, so equal scores keep listing order
        scored.sort(key=lambda item: item[0], reverse=True)
        winners = scored[:topk]
        if not winners:
            return []

        contents = await run_with_timeout(
            self._store.get_contents, [doc.id for _, doc in winners],
            timeout=self._store_timeout, label="content fetch",
        )

        results = [
            RetrievalMatch(
                document_id=doc.id,
                title=doc.title,
                type=doc.type,
                similarity=score,
                updated_at=doc.updated_at,
                excerpt=make_excerpt(contents.get(doc.id, ""), self._excerpt_chars),
            )
            for score, doc in winners
        ]

        logger.info(
            "Search in %s returned %d/%d documents", workspace_id, len(results), len(documents)
        )
        return results
