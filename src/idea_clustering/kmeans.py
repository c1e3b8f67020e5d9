"""
K-Means clustering for embedding vectors.

Centroids are seeded with K-Means++ and refined by alternating nearest-centroid
assignment and mean recomputation until the fraction of vectors changing
cluster drops below a tolerance, or an iteration cap is reached.

All randomness (seeding and empty-cluster reseeding) is drawn from a
``numpy.random.Generator`` that callers may inject for reproducible runs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Union

import numpy as np

from .errors import DimensionMismatch, InsufficientData

logger = logging.getLogger(__name__)

RandomSource = Union[np.random.Generator, int, None]


class ClusteringState(str, Enum):
    """Lifecycle of a single clustering run."""
    INITIALIZING = 'initializing'
    ITERATING = 'iterating'
    CONVERGED = 'converged'
    ITERATION_LIMIT_REACHED = 'iteration_limit_reached'


@dataclass
class KMeansConfig:
    """
    Clustering parameters.

    Args:
        k: Number of clusters (>= 1)
        max_iterations: Upper bound on assignment passes (>= 1)
        tolerance: Stop once the fraction of vectors changing cluster is
            below this value; must lie in [0, 1)
    """
    k: int
    max_iterations: int = 100
    tolerance: float = 0.0001

    def __post_init__(self):
        if not isinstance(self.k, (int, np.integer)) or self.k < 1:
            raise ValueError(f"k must be a positive integer, got {self.k!r}")
        if not isinstance(self.max_iterations, (int, np.integer)) or self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be a positive integer, got {self.max_iterations!r}"
            )
        if not 0.0 <= self.tolerance < 1.0:
            raise ValueError(f"tolerance must be in [0, 1), got {self.tolerance!r}")


@dataclass
class ClusterResult:
    """Output of a clustering run."""

    centroids: np.ndarray  # (k, dim)
    assignments: np.ndarray  # (n,) cluster index per input vector
    iterations: int
    state: ClusteringState = ClusteringState.CONVERGED
    change_history: List[float] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.state == ClusteringState.CONVERGED

    @property
    def k(self) -> int:
        return len(self.centroids)


def validate_vectors(vectors: Sequence[Sequence[float]], k: int) -> np.ndarray:
    """
    Check clustering input and return it as a fresh (n, dim) float array.

    Raises:
        InsufficientData: If there are no vectors or fewer than ``k``
        DimensionMismatch: If the vectors do not all share one length
    """
    n = len(vectors)
    if n == 0 or n < k:
        raise InsufficientData(n, k)

    dim = len(vectors[0])
    if dim == 0:
        raise ValueError("Vectors must have at least one dimension")

    for index, vector in enumerate(vectors):
        if len(vector) != dim:
            raise DimensionMismatch(dim, len(vector), index)

    # np.array copies, so the caller's vectors are never touched
    return np.array(vectors, dtype=np.float64)


def _squared_distances_to(data: np.ndarray, point: np.ndarray) -> np.ndarray:
    diff = data - point
    return np.einsum('nd,nd->n', diff, diff)


def initialize_centroids(
    data: np.ndarray,
    k: int,
    rng: np.random.Generator
) -> np.ndarray:
    """
    K-Means++ seeding.

    The first centroid is a uniformly random vector. Each further centroid is
    drawn with probability proportional to the squared distance from a vector
    to its nearest already-chosen centroid, so vectors equal to an existing
    centroid are never picked while any positive weight remains.

    Args:
        data: Input vectors of shape (n, dim)
        k: Number of centroids to choose
        rng: Random source

    Returns:
        New (k, dim) array; rows are copies of chosen input vectors
    """
    n, dim = data.shape
    centroids = np.empty((k, dim), dtype=np.float64)

    first = int(rng.integers(0, n))
    centroids[0] = data[first]
    min_sq = _squared_distances_to(data, centroids[0])

    for i in range(1, k):
        total = float(min_sq.sum())
        if total > 0.0:
            idx = int(rng.choice(n, p=min_sq / total))
        else:
            # Every vector coincides with a chosen centroid
            idx = int(rng.integers(0, n))
        centroids[i] = data[idx]
        min_sq = np.minimum(min_sq, _squared_distances_to(data, centroids[i]))

    return centroids


def assign_to_centroid(vector: np.ndarray, centroids: np.ndarray) -> int:
    """
    Index of the centroid nearest to ``vector`` by Euclidean distance.

    Ties resolve to the lowest centroid index.
    """
    distances = np.linalg.norm(centroids - vector, axis=1)
    return int(np.argmin(distances))


def recalculate_centroids(
    data: np.ndarray,
    assignments: np.ndarray,
    k: int,
    rng: np.random.Generator
) -> np.ndarray:
    """
    Recompute each centroid as the mean of its assigned vectors.

    A cluster that received no vectors is reseeded with a copy of a
    uniformly random input vector, so exactly ``k`` centroids come back.
    """
    n, dim = data.shape
    counts = np.bincount(assignments, minlength=k)
    sums = np.zeros((k, dim), dtype=np.float64)
    np.add.at(sums, assignments, data)

    centroids = np.empty((k, dim), dtype=np.float64)
    for cluster in range(k):
        if counts[cluster] > 0:
            centroids[cluster] = sums[cluster] / counts[cluster]
        else:
            idx = int(rng.integers(0, n))
            logger.debug(f"Cluster {cluster} is empty, reseeding from vector {idx}")
            centroids[cluster] = data[idx]

    return centroids


def kmeans_clustering(
    vectors: Sequence[Sequence[float]],
    k: int,
    max_iterations: int = 100,
    tolerance: float = 0.0001,
    rng: RandomSource = None
) -> ClusterResult:
    """
    Run K-Means clustering on a set of embedding vectors.

    Each pass reassigns every vector to its nearest centroid and measures the
    fraction of vectors whose cluster changed. When that fraction is below
    ``tolerance`` the run has converged and the centroids are left as they
    were for that pass. Otherwise centroids are recomputed and the loop
    continues, up to ``max_iterations`` passes.

    Args:
        vectors: Equal-length numeric vectors (list of lists or 2D array)
        k: Number of clusters
        max_iterations: Maximum number of passes (default: 100)
        tolerance: Convergence threshold on the changed fraction (default: 1e-4)
        rng: numpy Generator, integer seed, or None for fresh entropy

    Returns:
        ClusterResult with centroids, assignments and the iteration count

    Raises:
        ValueError: If the parameters are invalid
        InsufficientData: If there are fewer vectors than clusters
        DimensionMismatch: If vectors differ in length
    """
    config = KMeansConfig(k=k, max_iterations=max_iterations, tolerance=tolerance)
    data = validate_vectors(vectors, config.k)
    rng = np.random.default_rng(rng)
    n = data.shape[0]

    state = ClusteringState.INITIALIZING
    logger.debug(f"{state.value}: seeding {config.k} centroids from {n} vectors")
    centroids = initialize_centroids(data, config.k, rng)
    assignments = np.zeros(n, dtype=np.intp)
    change_history: List[float] = []
    iterations = 0

    state = ClusteringState.ITERATING
    for iteration in range(config.max_iterations):
        iterations = iteration + 1

        new_assignments = np.array(
            [assign_to_centroid(vector, centroids) for vector in data],
            dtype=np.intp
        )
        changed = int(np.count_nonzero(new_assignments != assignments))
        assignments = new_assignments

        fraction = changed / n
        change_history.append(fraction)
        logger.debug(f"Iteration {iterations}: {changed}/{n} vectors changed cluster")

        if fraction < config.tolerance:
            state = ClusteringState.CONVERGED
            break

        centroids = recalculate_centroids(data, assignments, config.k, rng)
    else:
        state = ClusteringState.ITERATION_LIMIT_REACHED

    if state == ClusteringState.CONVERGED:
        logger.info(f"K-Means converged in {iterations} iterations (k={config.k}, n={n})")
    else:
        logger.warning(
            f"K-Means stopped at iteration limit ({config.max_iterations}) "
            f"without converging (last change fraction {change_history[-1]:.4f})"
        )

    return ClusterResult(
        centroids=centroids,
        assignments=assignments,
        iterations=iterations,
        state=state,
        change_history=change_history
    )
