"""
Error types raised by the clustering core.

Both subclass ValueError so callers that already guard clustering calls
with ``except ValueError`` keep working.
"""


class ClusteringError(ValueError):
    """Base class for clustering input errors."""


class InsufficientData(ClusteringError):
    """Raised when there are no vectors or fewer vectors than clusters."""

    def __init__(self, n_vectors: int, k: int):
        self.n_vectors = n_vectors
        self.k = k
        super().__init__(f"Not enough vectors ({n_vectors}) for {k} clusters")


class DimensionMismatch(ClusteringError):
    """Raised when vectors in one clustering run differ in length."""

    def __init__(self, expected: int, actual: int, index: int = None):
        self.expected = expected
        self.actual = actual
        self.index = index
        where = f" at index {index}" if index is not None else ""
        super().__init__(
            f"Vector dimension mismatch{where}: expected {expected}, got {actual}"
        )
