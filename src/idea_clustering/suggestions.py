"""
Turn clustering output into idea suggestions.

A suggestion summarises one cluster of posts: a display name taken from the
most common tag, the top tags, up to four thumbnails from the posts closest
to the centroid, and the centroid itself.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import MIN_CLUSTER_SIZE
from .kmeans import ClusterResult
from .representatives import get_cluster_representatives

logger = logging.getLogger(__name__)

TOP_TAG_COUNT = 5
THUMBNAIL_COUNT = 4


@dataclass
class ClusterSuggestion:
    """One idea cluster ready to be stored."""
    id: str
    name: str
    centroid: List[float]
    post_count: int
    thumbnail_urls: List[str] = field(default_factory=list)
    top_tags: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'centroid': list(self.centroid),
            'postCount': self.post_count,
            'thumbnailUrls': list(self.thumbnail_urls),
            'topTags': list(self.top_tags),
        }


@dataclass
class ClusteringStats:
    """Summary of one clustering run."""
    last_run_at: int  # unix milliseconds
    last_run_by: str  # 'scheduled' or 'manual'
    clusters_found: int
    posts_analyzed: int

    def to_document(self) -> Dict[str, Any]:
        return {
            'lastRunAt': self.last_run_at,
            'lastRunBy': self.last_run_by,
            'clustersFound': self.clusters_found,
            'postsAnalyzed': self.posts_analyzed,
        }


def extract_vectors(
    posts: Sequence[Dict[str, Any]]
) -> Tuple[List[List[float]], List[Dict[str, Any]]]:
    """
    Pull embeddings out of posts.

    Posts without a non-empty, finite numeric embedding are skipped.

    Returns:
        Tuple of (vectors, posts) aligned by index
    """
    vectors = []
    valid_posts = []

    for post in posts:
        embedding = post.get('embedding')
        if not isinstance(embedding, (list, tuple)) or len(embedding) == 0:
            logger.warning(f"Post {post.get('id')} has no usable embedding, skipping")
            continue

        try:
            array = np.asarray(embedding, dtype=np.float64)
        except (TypeError, ValueError):
            logger.warning(f"Post {post.get('id')} has non-numeric embedding, skipping")
            continue

        if array.ndim != 1 or not np.all(np.isfinite(array)):
            logger.warning(f"Post {post.get('id')} has invalid embedding values, skipping")
            continue

        vectors.append(array.tolist())
        valid_posts.append(post)

    return vectors, valid_posts


def top_tags(posts: Sequence[Dict[str, Any]], limit: int = TOP_TAG_COUNT) -> List[str]:
    """
    Most frequent tags across posts.

    Tags are lower-cased and stripped; single-character tags are ignored.
    Equal counts keep the order in which tags were first seen.
    """
    counts: Counter = Counter()
    for post in posts:
        tags = post.get('tags')
        if not isinstance(tags, list):
            continue
        for tag in tags:
            if not isinstance(tag, str):
                continue
            normalized = tag.lower().strip()
            if len(normalized) > 1:
                counts[normalized] += 1

    return [tag for tag, _ in counts.most_common(limit)]


def cluster_name(tags: Sequence[str], index: int) -> str:
    """Display name: the top tag capitalised, or a numbered fallback."""
    if tags:
        return tags[0][:1].upper() + tags[0][1:]
    return f"Cluster {index + 1}"


def thumbnail_url(post: Dict[str, Any]) -> Optional[str]:
    content = post.get('content')
    if isinstance(content, dict):
        url = content.get('jpegUrl') or content.get('url')
        if url:
            return url
    return post.get('imageUrl') or None


def thumbnail_urls(posts: Sequence[Dict[str, Any]], limit: int = THUMBNAIL_COUNT) -> List[str]:
    """Thumbnail URLs of the first ``limit`` posts, skipping posts without one."""
    urls = (thumbnail_url(post) for post in posts[:limit])
    return [url for url in urls if url]


def build_suggestions(
    vectors: Sequence[Sequence[float]],
    posts: Sequence[Dict[str, Any]],
    result: ClusterResult,
    min_cluster_size: int = MIN_CLUSTER_SIZE,
    now_ms: Optional[int] = None
) -> List[ClusterSuggestion]:
    """
    Build one suggestion per sufficiently large cluster.

    Args:
        vectors: Vectors that were clustered
        posts: Posts aligned with ``vectors``
        result: Clustering output
        min_cluster_size: Clusters with fewer members are dropped
        now_ms: Timestamp used in suggestion ids (default: current time)

    Returns:
        Suggestions in cluster index order
    """
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms

    ranked_clusters = get_cluster_representatives(
        vectors, posts, result.centroids, result.assignments, top_n=None
    )

    suggestions = []
    for index, members in enumerate(ranked_clusters):
        if len(members) < min_cluster_size:
            logger.info(f"Skipping cluster {index}: {len(members)} posts (< {min_cluster_size})")
            continue

        member_posts = [member.payload for member in members]
        tags = top_tags(member_posts)

        suggestions.append(ClusterSuggestion(
            id=f"cluster-{index}-{now_ms}",
            name=cluster_name(tags, index),
            centroid=np.asarray(result.centroids[index], dtype=float).tolist(),
            post_count=len(members),
            thumbnail_urls=thumbnail_urls(member_posts),
            top_tags=tags
        ))

    logger.info(f"Built {len(suggestions)} suggestions from {len(ranked_clusters)} clusters")
    return suggestions
