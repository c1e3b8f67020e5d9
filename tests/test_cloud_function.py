"""
Tests for the HTTP and scheduled Cloud Function handlers.
"""

import json
import unittest
from unittest.mock import MagicMock, Mock, patch
import sys
import os

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from idea_clustering import cloud_function
from idea_clustering.errors import InsufficientData


class MockRequest:
    def __init__(self, path='/cluster', method='POST', body=None):
        self.path = path
        self.method = method
        self._body = body

    def get_json(self, silent=False):
        return self._body


@patch.dict(os.environ, {'FIREBASE_PROJECT_ID': 'test-project'}, clear=True)
@patch('idea_clustering.cloud_function.build_store')
@patch('idea_clustering.cloud_function.run_clustering')
class TestClusteringHttp(unittest.TestCase):
    """Test clustering_http routing and responses."""

    def test_health(self, mock_run, mock_build_store):
        response, status = cloud_function.clustering_http(MockRequest('/health', 'GET'))

        self.assertEqual(status, 200)
        self.assertEqual(response, {'status': 'ok'})
        mock_run.assert_not_called()

    def test_unknown_route(self, mock_run, mock_build_store):
        response, status = cloud_function.clustering_http(MockRequest('/other', 'GET'))
        self.assertEqual(status, 404)

        response, status = cloud_function.clustering_http(MockRequest('/cluster', 'GET'))
        self.assertEqual(status, 404)

    def test_cluster_with_defaults(self, mock_run, mock_build_store):
        mock_run.return_value = [MagicMock()] * 6

        response, status = cloud_function.clustering_http(MockRequest(body=None))

        self.assertEqual(status, 200)
        self.assertEqual(response, {
            'success': True,
            'clusters': 6,
            'message': 'Found 6 idea clusters'
        })
        kwargs = mock_run.call_args.kwargs
        self.assertEqual(kwargs['k'], 8)
        self.assertEqual(kwargs['sample_size'], 300)
        mock_build_store.assert_called_once()
        self.assertIs(mock_build_store.call_args.kwargs['cache'], cloud_function._token_cache)

        store = mock_build_store.return_value
        stats = store.update_clustering_stats.call_args.args[0]
        self.assertEqual(stats.last_run_by, 'manual')
        self.assertEqual(stats.clusters_found, 6)
        self.assertEqual(stats.posts_analyzed, 300)

    def test_cluster_with_body(self, mock_run, mock_build_store):
        mock_run.return_value = []

        response, status = cloud_function.clustering_http(
            MockRequest(body={'k': 4, 'sampleSize': 120})
        )

        self.assertEqual(status, 200)
        kwargs = mock_run.call_args.kwargs
        self.assertEqual(kwargs['k'], 4)
        self.assertEqual(kwargs['sample_size'], 120)

    def test_invalid_parameters(self, mock_run, mock_build_store):
        for body in ({'k': 'eight'}, {'k': -2}, {'sampleSize': 2.5}):
            response, status = cloud_function.clustering_http(MockRequest(body=body))
            self.assertEqual(status, 400)
            self.assertFalse(response['success'])
        mock_run.assert_not_called()

    def test_failure_returns_500(self, mock_run, mock_build_store):
        mock_run.side_effect = InsufficientData(3, 8)

        response, status = cloud_function.clustering_http(MockRequest(body={}))

        self.assertEqual(status, 500)
        self.assertFalse(response['success'])
        self.assertIn('Not enough vectors (3) for 8 clusters', response['error'])
        mock_build_store.return_value.update_clustering_stats.assert_not_called()


@patch.dict(os.environ, {'CLUSTER_K': '5'}, clear=True)
@patch('idea_clustering.cloud_function.build_store')
@patch('idea_clustering.cloud_function.run_clustering')
class TestClusteringScheduled(unittest.TestCase):
    """Test the scheduled handler."""

    def test_scheduled_run(self, mock_run, mock_build_store):
        mock_run.return_value = [MagicMock()] * 3

        clusters = cloud_function.clustering_scheduled(MagicMock())

        self.assertEqual(clusters, 3)
        self.assertEqual(mock_run.call_args.kwargs['k'], 5)
        stats = mock_build_store.return_value.update_clustering_stats.call_args.args[0]
        self.assertEqual(stats.last_run_by, 'scheduled')

    def test_scheduled_failure_is_raised(self, mock_run, mock_build_store):
        mock_run.side_effect = RuntimeError('firestore unavailable')

        with self.assertRaises(RuntimeError):
            cloud_function.clustering_scheduled(MagicMock())


class TestTokenCacheReuse(unittest.TestCase):
    """Test that warm invocations share one access token."""

    @classmethod
    def setUpClass(cls):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        private_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode()
        cls.service_account_key = json.dumps({
            'type': 'service_account',
            'project_id': 'test-project',
            'private_key_id': 'key-123',
            'private_key': private_pem,
            'client_email': 'worker@test-project.iam.gserviceaccount.com',
            'token_uri': 'https://oauth2.example.com/token',
        })

    def setUp(self):
        cloud_function._token_cache.clear()

    def tearDown(self):
        cloud_function._token_cache.clear()

    @patch('idea_clustering.cloud_function.run_clustering')
    @patch('idea_clustering.firestore_store.firestore.Client')
    @patch('requests.Session.post')
    def test_token_exchanged_once_across_requests(self, mock_post, mock_client, mock_run):
        token_response = Mock()
        token_response.ok = True
        token_response.status_code = 200
        token_response.headers = {}
        token_response.json.return_value = {'access_token': 'access-1', 'expires_in': 3600}
        mock_post.return_value = token_response
        mock_run.return_value = []

        env = {'FIREBASE_SERVICE_ACCOUNT_KEY': self.service_account_key}
        with patch.dict(os.environ, env, clear=True):
            for _ in range(2):
                response, status = cloud_function.clustering_http(MockRequest(body={}))
                self.assertEqual(status, 200)

        self.assertEqual(mock_post.call_count, 1)
        self.assertEqual(mock_client.call_count, 2)
        for call in mock_client.call_args_list:
            self.assertEqual(call.kwargs['credentials'].token, 'access-1')


if __name__ == '__main__':
    unittest.main()
