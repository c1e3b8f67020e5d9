"""
Cluster representatives: members ranked by similarity to their centroid.
"""

from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, TypeVar

import numpy as np

from .similarity import cosine_similarity

T = TypeVar('T')


@dataclass(frozen=True)
class Representative(Generic[T]):
    """A cluster member and its cosine similarity to the cluster centroid."""
    payload: T
    similarity: float


def get_cluster_representatives(
    vectors: Sequence[Sequence[float]],
    payloads: Sequence[T],
    centroids: Sequence[Sequence[float]],
    assignments: Sequence[int],
    top_n: Optional[int] = 5
) -> List[List[Representative[T]]]:
    """
    Rank each cluster's members by cosine similarity to the cluster centroid.

    Payloads are carried through untouched. Members with equal similarity
    keep their input order.

    Args:
        vectors: Vectors that were clustered
        payloads: Items aligned 1:1 with ``vectors``
        centroids: Final centroids, one per cluster
        assignments: Cluster index per vector
        top_n: Maximum members returned per cluster; None returns all

    Returns:
        One list per cluster (index-aligned with ``centroids``), sorted by
        descending similarity. Clusters without members give an empty list.

    Raises:
        ValueError: If the input lengths disagree, an assignment is not a
            valid centroid index, or top_n is negative
    """
    if len(payloads) != len(vectors) or len(assignments) != len(vectors):
        raise ValueError(
            f"Mismatch: {len(vectors)} vectors, {len(payloads)} payloads, "
            f"{len(assignments)} assignments"
        )
    if top_n is not None and top_n < 0:
        raise ValueError(f"top_n must be >= 0, got {top_n}")

    members: List[List[Representative[T]]] = [[] for _ in range(len(centroids))]

    for vector, payload, cluster in zip(vectors, payloads, assignments):
        cluster = int(cluster)
        if not 0 <= cluster < len(centroids):
            raise ValueError(
                f"Assignment {cluster} is out of range for {len(centroids)} centroids"
            )
        similarity = cosine_similarity(vector, centroids[cluster])
        members[cluster].append(Representative(payload, similarity))

    representatives = []
    for cluster_members in members:
        # sorted() is stable, so ties keep input order
        ranked = sorted(cluster_members, key=lambda r: r.similarity, reverse=True)
        representatives.append(ranked if top_n is None else ranked[:top_n])

    return representatives


def cluster_sizes(assignments: Sequence[int], k: int) -> List[int]:
    """Number of members per cluster index."""
    return np.bincount(np.asarray(assignments, dtype=np.intp), minlength=k).tolist()
