"""
Distance and similarity functions for embedding vectors.

Vectors may be plain lists or numpy arrays; both are converted to float64
arrays before computing.
"""

from typing import Sequence, Union

import numpy as np

from .errors import DimensionMismatch

VectorLike = Union[Sequence[float], np.ndarray]


def _as_pair(a: VectorLike, b: VectorLike) -> tuple[np.ndarray, np.ndarray]:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(len(a), len(b))
    return a, b


def squared_distance(a: VectorLike, b: VectorLike) -> float:
    """Squared Euclidean distance between two vectors of equal length."""
    a, b = _as_pair(a, b)
    diff = a - b
    return float(np.dot(diff, diff))


def euclidean_distance(a: VectorLike, b: VectorLike) -> float:
    """
    Euclidean (L2) distance between two vectors.

    Args:
        a: First vector
        b: Second vector, same length as ``a``

    Returns:
        Non-negative distance, 0.0 only when the vectors are equal

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    return float(np.sqrt(squared_distance(a, b)))


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude instead of dividing
    by zero. The result is clipped to [-1, 1].

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    a, b = _as_pair(a, b)
    magnitude = np.linalg.norm(a) * np.linalg.norm(b)
    if magnitude == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / magnitude, -1.0, 1.0))
