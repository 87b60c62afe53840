"""
Similarity Index

Cosine similarity over embedding vectors. Stateless.
"""

from typing import List, Optional, Sequence

import numpy as np

from .errors import DimensionMismatch


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec1: First embedding vector
        vec2: Second embedding vector

    Returns:
        Similarity clamped to 0.0-1.0; 0.0 when either vector is all zeros

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    v1 = np.asarray(vec1, dtype=float)
    v2 = np.asarray(vec2, dtype=float)

    if v1.shape != v2.shape:
        raise DimensionMismatch(v1.size, v2.size)

    norm = float(np.linalg.norm(v1)) * float(np.linalg.norm(v2))
    if norm == 0.0:
        return 0.0

    similarity = float(np.dot(v1, v2)) / norm

    # Clamp to valid range (numerical precision issues)
    return max(0.0, min(1.0, similarity))


def batch_cosine_similarity(
    query_vec: Sequence[float],
    vectors: Sequence[Optional[Sequence[float]]],
) -> List[Optional[float]]:
    """
    Compute cosine similarity between a query and many vectors.

    Entries that are None, or whose length differs from the query, yield
    None so callers can exclude them from ranking instead of scoring them 0.
    """
    query = np.asarray(query_vec, dtype=float)
    query_norm = float(np.linalg.norm(query))

    scores: List[Optional[float]] = []
    for vec in vectors:
        if vec is None or len(vec) == 0:
            scores.append(None)
            continue
        candidate = np.asarray(vec, dtype=float)
        if candidate.shape != query.shape:
            scores.append(None)
            continue
        norm = query_norm * float(np.linalg.norm(candidate))
        if norm == 0.0:
            scores.append(0.0)
            continue
        scores.append(max(0.0, min(1.0, float(np.dot(query, candidate)) / norm)))

    return scores
