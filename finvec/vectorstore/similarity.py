"""
Cosine similarity shared by every in-process backend.

All functions are pure: no shared mutable state, safe to call from
many tasks or threads at once.
"""

from collections.abc import Iterable, Sequence

import numpy as np

from finvec.vectorstore.base import VectorSearchResult
from finvec.vectorstore.exceptions import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the lengths differ
        ValueError: If the vectors are empty
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    if len(a) == 0:
        raise ValueError("Cannot compute similarity of empty vectors")

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def cosine_similarities(
    query: Sequence[float],
    vectors: Sequence[Sequence[float]],
) -> np.ndarray:
    """
    Cosine similarity of one query against many vectors in a single pass.

    Args:
        query: Query vector of length dim
        vectors: Candidate vectors, each of length dim

    Returns:
        Array of shape (len(vectors),); zero-norm rows score 0.0
    """
    if len(vectors) == 0:
        return np.zeros(0, dtype=np.float64)

    q = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != q.shape[0]:
        actual = matrix.shape[-1] if matrix.ndim == 2 else -1
        raise DimensionMismatchError(q.shape[0], actual)

    q_norm = np.linalg.norm(q)
    if q_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    # Normalize rows; zero rows stay zero
    row_norms = np.linalg.norm(matrix, axis=1)
    safe_norms = np.where(row_norms == 0, 1.0, row_norms)

    return (matrix @ q) / (safe_norms * q_norm)


def rank(
    results: Iterable[VectorSearchResult],
    top_k: int,
) -> list[VectorSearchResult]:
    """
    Sort results by descending score and keep the first top_k.

    The sort is stable, so ties keep their arrival order.
    """
    return sorted(results, key=lambda r: r.score, reverse=True)[:top_k]
