"""
Firestore access for the clustering worker.

Reads posts that carry embeddings and writes cluster suggestions and run
statistics back.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.vector import Vector

from .auth import ServiceAccountTokenProvider, TokenCache
from .config import ClusteringSettings

logger = logging.getLogger(__name__)

BATCH_LIMIT = 500


def embedding_to_list(embedding: Any) -> Optional[List[float]]:
    """
    Convert a stored embedding to a plain list of floats.

    Handles Firestore Vector values and plain arrays. Returns None for
    anything else.
    """
    if hasattr(embedding, 'to_map_value'):
        # Firestore Vector type - values live under the 'value' key
        map_value = embedding.to_map_value()
        values = map_value.get('value', map_value)
        return [float(v) for v in values]
    if isinstance(embedding, (list, tuple)):
        return list(embedding)
    return None


class PostStore:
    """
    Firestore collaborator for the clustering worker.

    Args:
        db: Firestore client
        posts_collection: Collection holding posts with embeddings
        suggestions_collection: Collection receiving cluster suggestions
        stats_document: "collection/document" path of the run statistics
    """

    def __init__(
        self,
        db: firestore.Client,
        posts_collection: str = 'userPosts',
        suggestions_collection: str = 'ideaSuggestions',
        stats_document: str = 'system/clusteringStats'
    ):
        self.db = db
        self.posts_collection = posts_collection
        self.suggestions_collection = suggestions_collection
        self.stats_document = stats_document

    def get_posts_with_embeddings(self, limit: int = 500) -> List[Dict[str, Any]]:
        """
        Fetch the most recent posts that have an embedding.

        Args:
            limit: Maximum number of posts

        Returns:
            List of post dicts with 'id' and document fields; embeddings are
            converted to plain float lists
        """
        logger.info(f"Querying {self.posts_collection} for up to {limit} posts with embeddings")

        query = (
            self.db.collection(self.posts_collection)
            .where('embedding', '!=', None)
            .order_by('createdAt', direction=firestore.Query.DESCENDING)
            .limit(limit)
        )

        posts = []
        for doc in query.stream():
            data = doc.to_dict() or {}
            data['id'] = doc.id
            if 'embedding' in data:
                data['embedding'] = embedding_to_list(data['embedding'])
            posts.append(data)

        logger.info(f"Retrieved {len(posts)} posts")
        return posts

    def write_cluster_suggestions(self, suggestions: Iterable[Any]) -> int:
        """
        Write suggestions to the suggestions collection, keyed by their id.

        Accepts ClusterSuggestion objects or plain dicts with an 'id' key.

        Returns:
            Number of documents written
        """
        collection_ref = self.db.collection(self.suggestions_collection)

        batch = self.db.batch()
        batch_count = 0
        written = 0

        for suggestion in suggestions:
            document = suggestion.to_document() if hasattr(suggestion, 'to_document') else dict(suggestion)
            if isinstance(document.get('centroid'), list):
                document['centroid'] = Vector(document['centroid'])

            batch.set(collection_ref.document(document['id']), document)
            batch_count += 1
            written += 1

            if batch_count >= BATCH_LIMIT:
                batch.commit()
                logger.info(f"  Committed batch ({batch_count} suggestions)")
                batch = self.db.batch()
                batch_count = 0

        if batch_count > 0:
            batch.commit()
            logger.info(f"  Committed final batch ({batch_count} suggestions)")

        logger.info(f"Wrote {written} suggestions to {self.suggestions_collection}")
        return written

    def update_clustering_stats(self, stats: Any) -> None:
        """Merge run statistics into the stats document."""
        document = stats.to_document() if hasattr(stats, 'to_document') else dict(stats)
        self.db.document(self.stats_document).set(document, merge=True)
        logger.info(f"Updated {self.stats_document}: {document}")


def build_store(
    settings: ClusteringSettings,
    cache: Optional[TokenCache] = None
) -> PostStore:
    """
    Create a PostStore from settings.

    With a service account key in the settings, credentials come from the
    JWT token exchange (using ``cache``); otherwise the client falls back to
    application default credentials.
    """
    if settings.service_account_key:
        provider = ServiceAccountTokenProvider(settings.service_account_key, cache=cache)
        project = settings.project_id or provider.info.get('project_id')
        logger.info(f"Initializing Firestore client for project {project} (service account)")
        db = firestore.Client(
            project=project,
            credentials=provider.credentials(),
            database=settings.database
        )
    else:
        logger.info(f"Initializing Firestore client for project {settings.project_id}")
        db = firestore.Client(project=settings.project_id, database=settings.database)

    return PostStore(
        db,
        posts_collection=settings.posts_collection,
        suggestions_collection=settings.suggestions_collection,
        stats_document=settings.stats_document
    )
