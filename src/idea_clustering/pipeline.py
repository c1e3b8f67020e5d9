"""
Clustering run: fetch posts, cluster their embeddings, store suggestions.

Usage:
    python3 -m idea_clustering [--k 8] [--sample-size 300] [--seed 42] [--dry-run]

Environment Variables:
    FIREBASE_PROJECT_ID: Firebase / GCP project ID
    FIREBASE_SERVICE_ACCOUNT_KEY: Service account key JSON (optional)
    CLUSTER_K, CLUSTER_SAMPLE_SIZE, MIN_CLUSTER_SIZE: Run defaults
"""

import argparse
import logging
import time
from typing import List, Optional

from .config import (
    DEFAULT_K,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_TOLERANCE,
    MIN_CLUSTER_SIZE,
    ClusteringSettings,
)
from .errors import InsufficientData
from .firestore_store import PostStore, build_store
from .kmeans import RandomSource, kmeans_clustering
from .representatives import cluster_sizes
from .suggestions import ClusteringStats, ClusterSuggestion, build_suggestions, extract_vectors

logger = logging.getLogger(__name__)


def run_clustering(
    store: PostStore,
    k: int = DEFAULT_K,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    min_cluster_size: int = MIN_CLUSTER_SIZE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = DEFAULT_TOLERANCE,
    rng: RandomSource = None,
    dry_run: bool = False
) -> List[ClusterSuggestion]:
    """
    Cluster recent post embeddings into idea suggestions.

    Args:
        store: Post store to read from and write to
        k: Number of clusters
        sample_size: Number of recent posts to analyse
        min_cluster_size: Smallest cluster kept as a suggestion
        max_iterations: K-Means iteration cap
        tolerance: K-Means convergence tolerance
        rng: Random source for K-Means (seed or Generator)
        dry_run: If True, don't write suggestions

    Returns:
        Suggestions that were (or in dry run, would have been) written

    Raises:
        InsufficientData: Fewer usable posts than clusters
        DimensionMismatch: Posts carry embeddings of different lengths
    """
    logger.info(f"[Step 1/4] Fetching {sample_size} posts with embeddings...")
    posts = store.get_posts_with_embeddings(sample_size)

    if len(posts) < k:
        raise InsufficientData(len(posts), k)

    logger.info("[Step 2/4] Extracting embeddings...")
    vectors, valid_posts = extract_vectors(posts)
    skipped = len(posts) - len(valid_posts)
    if skipped:
        logger.warning(f"Skipped {skipped} posts without usable embeddings")

    logger.info(f"[Step 3/4] Running K-Means with {len(vectors)} vectors, k={k}...")
    result = kmeans_clustering(
        vectors, k, max_iterations=max_iterations, tolerance=tolerance, rng=rng
    )
    logger.info(
        f"K-Means finished after {result.iterations} iterations ({result.state.value}); "
        f"cluster sizes: {cluster_sizes(result.assignments, k)}"
    )

    suggestions = build_suggestions(
        vectors, valid_posts, result, min_cluster_size=min_cluster_size
    )

    if dry_run:
        logger.info(f"[Step 4/4] [DRY RUN] Would write {len(suggestions)} suggestions")
    else:
        logger.info(f"[Step 4/4] Writing {len(suggestions)} suggestions to Firestore...")
        store.write_cluster_suggestions(suggestions)

    return suggestions


def record_run(
    store: PostStore,
    trigger: str,
    clusters_found: int,
    posts_analyzed: int
) -> ClusteringStats:
    """Store statistics for a finished run."""
    stats = ClusteringStats(
        last_run_at=int(time.time() * 1000),
        last_run_by=trigger,
        clusters_found=clusters_found,
        posts_analyzed=posts_analyzed
    )
    store.update_clustering_stats(stats)
    return stats


def main(argv: Optional[List[str]] = None):
    """CLI entry point for a one-off clustering run."""
    parser = argparse.ArgumentParser(
        description='Cluster post embeddings into idea suggestions'
    )
    parser.add_argument('--k', type=int, default=None, help='Number of clusters')
    parser.add_argument('--sample-size', type=int, default=None, help='Posts to analyse')
    parser.add_argument('--min-cluster-size', type=int, default=None,
                        help='Smallest cluster kept as a suggestion')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for reproducible runs')
    parser.add_argument('--dry-run', action='store_true', help='Run without writing to Firestore')

    args = parser.parse_args(argv)

    settings = ClusteringSettings.from_env()
    k = args.k if args.k is not None else settings.k
    sample_size = args.sample_size if args.sample_size is not None else settings.sample_size
    min_cluster_size = (
        args.min_cluster_size if args.min_cluster_size is not None else settings.min_cluster_size
    )

    store = build_store(settings)

    try:
        suggestions = run_clustering(
            store,
            k=k,
            sample_size=sample_size,
            min_cluster_size=min_cluster_size,
            max_iterations=settings.max_iterations,
            tolerance=settings.tolerance,
            rng=args.seed,
            dry_run=args.dry_run
        )
        if not args.dry_run:
            record_run(store, 'manual', len(suggestions), sample_size)
        for suggestion in suggestions:
            logger.info(f"  {suggestion.id}: {suggestion.name} ({suggestion.post_count} posts)")
        logger.info(f"\nClustering complete: {len(suggestions)} suggestions")
    except Exception as e:
        logger.error(f"Clustering run failed: {e}", exc_info=True)
        raise

    return suggestions


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    main()
