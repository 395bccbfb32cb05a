"""
Vector similarity and batching helpers.
"""

from typing import Iterator, List, Sequence, TypeVar
import numpy as np

from lease_rag.core.exception import ValidationError

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 if either has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    if va.shape != vb.shape:
        raise ValidationError(f"Vector length mismatch: {va.shape[0]} vs {vb.shape[0]}")

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_scores(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity between one query vector and every row of matrix.
    Rows (or a query) with zero norm score 0.0.
    """
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)

    if m.size == 0:
        return np.zeros(0, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise ValidationError(f"Query dimension {q.shape[0]} does not match matrix shape {m.shape}")

    denom = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    scores = np.zeros_like(dots)
    np.divide(dots, denom, out=scores, where=denom != 0)
    return scores


def rank_indices(scores: np.ndarray, tie_breakers: Sequence[int], k: int) -> List[int]:
    """
    Positions of the top-k scores, highest first.
    Equal scores are ordered by ascending tie-breaker.
    """
    if len(scores) != len(tie_breakers):
        raise ValidationError("scores and tie_breakers must have the same length")

    # lexsort sorts by the last key first
    order = np.lexsort((np.asarray(tie_breakers), -np.asarray(scores)))
    return [int(i) for i in order[:k]]


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most `size` items."""
    if size <= 0:
        raise ValidationError(f"batch size must be positive, got {size}")
    for i in range(0, len(items), size):
        yield items[i:i + size]
