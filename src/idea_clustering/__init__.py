"""
Idea clustering for post embeddings.

Groups embedding vectors with K-Means (K-Means++ seeding), ranks cluster
members by similarity to their centroid, and turns the clusters into idea
suggestions stored in Firestore.

Two execution modes:
1. Cloud Function: weekly scheduled run or manual POST /cluster
2. CLI: python3 -m idea_clustering [--dry-run]
"""

from .errors import ClusteringError, DimensionMismatch, InsufficientData
from .kmeans import ClusteringState, ClusterResult, KMeansConfig, kmeans_clustering
from .representatives import Representative, get_cluster_representatives
from .similarity import cosine_similarity, euclidean_distance

__all__ = [
    'ClusteringError',
    'DimensionMismatch',
    'InsufficientData',
    'ClusteringState',
    'ClusterResult',
    'KMeansConfig',
    'kmeans_clustering',
    'Representative',
    'get_cluster_representatives',
    'cosine_similarity',
    'euclidean_distance',
]
