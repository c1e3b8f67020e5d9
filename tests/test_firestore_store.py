"""
Unit tests for the Firestore post store, using a mocked client.
"""

import unittest
from unittest.mock import MagicMock, Mock, patch
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from google.cloud.firestore_v1.vector import Vector

from idea_clustering.config import ClusteringSettings
from idea_clustering.firestore_store import PostStore, build_store, embedding_to_list
from idea_clustering.suggestions import ClusteringStats, ClusterSuggestion


def _mock_doc(doc_id, data):
    doc = Mock()
    doc.id = doc_id
    doc.to_dict.return_value = data
    return doc


class TestEmbeddingToList(unittest.TestCase):

    def test_plain_list(self):
        self.assertEqual(embedding_to_list([0.1, 0.2]), [0.1, 0.2])

    def test_vector_like(self):
        vector = Mock()
        vector.to_map_value.return_value = {'value': [1, 2, 3]}
        self.assertEqual(embedding_to_list(vector), [1.0, 2.0, 3.0])

    def test_unsupported(self):
        self.assertIsNone(embedding_to_list('abc'))
        self.assertIsNone(embedding_to_list(None))


class TestPostStore(unittest.TestCase):
    """Test PostStore reads and writes."""

    def setUp(self):
        self.db = MagicMock()
        self.store = PostStore(self.db)

    def test_get_posts_with_embeddings(self):
        vector = Mock()
        vector.to_map_value.return_value = {'value': [0.5, 0.5]}
        docs = [
            _mock_doc('post-1', {'embedding': [0.1, 0.2], 'tags': ['a']}),
            _mock_doc('post-2', {'embedding': vector}),
        ]
        query = self.db.collection.return_value.where.return_value.order_by.return_value.limit.return_value
        query.stream.return_value = iter(docs)

        posts = self.store.get_posts_with_embeddings(limit=50)

        self.db.collection.assert_called_with('userPosts')
        self.db.collection.return_value.where.assert_called_with('embedding', '!=', None)
        self.db.collection.return_value.where.return_value.order_by.return_value.limit.assert_called_with(50)
        self.assertEqual(posts[0], {'id': 'post-1', 'embedding': [0.1, 0.2], 'tags': ['a']})
        self.assertEqual(posts[1], {'id': 'post-2', 'embedding': [0.5, 0.5]})

    def test_write_cluster_suggestions(self):
        batch = MagicMock()
        self.db.batch.return_value = batch
        suggestions = [
            ClusterSuggestion(id='cluster-0-1', name='Cats', centroid=[1.0, 0.0], post_count=4),
            ClusterSuggestion(id='cluster-1-1', name='Cars', centroid=[0.0, 1.0], post_count=3),
        ]

        written = self.store.write_cluster_suggestions(suggestions)

        self.assertEqual(written, 2)
        self.assertEqual(batch.set.call_count, 2)
        self.assertEqual(batch.commit.call_count, 1)
        self.db.collection.return_value.document.assert_any_call('cluster-0-1')

        document = batch.set.call_args_list[0].args[1]
        self.assertEqual(document['postCount'], 4)
        self.assertIsInstance(document['centroid'], Vector)

    def test_batch_commit_at_500_limit(self):
        batch = MagicMock()
        self.db.batch.return_value = batch
        suggestions = [{'id': f'cluster-{i}-1', 'name': 'x'} for i in range(600)]

        self.store.write_cluster_suggestions(suggestions)

        self.assertEqual(batch.set.call_count, 600)
        self.assertEqual(batch.commit.call_count, 2)

    def test_update_clustering_stats(self):
        stats = ClusteringStats(
            last_run_at=1, last_run_by='manual', clusters_found=2, posts_analyzed=10
        )

        self.store.update_clustering_stats(stats)

        self.db.document.assert_called_once_with('system/clusteringStats')
        self.db.document.return_value.set.assert_called_once_with(stats.to_document(), merge=True)


class TestBuildStore(unittest.TestCase):
    """Test client construction from settings."""

    @patch('idea_clustering.firestore_store.firestore.Client')
    def test_application_default_credentials(self, mock_client):
        settings = ClusteringSettings(project_id='test-project', posts_collection='posts')

        store = build_store(settings)

        mock_client.assert_called_once_with(project='test-project', database='(default)')
        self.assertEqual(store.posts_collection, 'posts')

    @patch('idea_clustering.firestore_store.ServiceAccountTokenProvider')
    @patch('idea_clustering.firestore_store.firestore.Client')
    def test_service_account_credentials(self, mock_client, mock_provider_cls):
        provider = mock_provider_cls.return_value
        provider.info = {'project_id': 'key-project'}
        settings = ClusteringSettings(service_account_key='{"client_email": "x"}')
        cache = Mock()

        build_store(settings, cache=cache)

        mock_provider_cls.assert_called_once_with('{"client_email": "x"}', cache=cache)
        mock_client.assert_called_once_with(
            project='key-project',
            credentials=provider.credentials.return_value,
            database='(default)'
        )


if __name__ == '__main__':
    unittest.main()
