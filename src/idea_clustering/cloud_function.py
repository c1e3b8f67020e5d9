"""
Cloud Function entry points for the idea clustering worker.

Entry points:
    clustering_http       HTTP trigger (manual runs and health checks)
    clustering_scheduled  CloudEvent trigger (weekly Cloud Scheduler job via Pub/Sub)

HTTP routes:
    POST /cluster   {"k": 8, "sampleSize": 300}  (both optional)
    GET  /health

Response (POST /cluster):
    {
        "success": true,
        "clusters": 6,
        "message": "Found 6 idea clusters"
    }
"""

import logging
from typing import Any

import functions_framework

from .auth import TokenCache
from .config import ClusteringSettings
from .firestore_store import build_store
from .pipeline import record_run, run_clustering

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Process-wide; reused across invocations until shortly before expiry
_token_cache = TokenCache()


def _positive_int(value: Any, name: str, default: int) -> int:
    # Missing, null and 0 fall back to the default
    if not value:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a positive integer")
    return value


def _run(
    trigger: str,
    settings: ClusteringSettings,
    k: int,
    sample_size: int
) -> int:
    store = build_store(settings, cache=_token_cache)

    suggestions = run_clustering(
        store,
        k=k,
        sample_size=sample_size,
        min_cluster_size=settings.min_cluster_size,
        max_iterations=settings.max_iterations,
        tolerance=settings.tolerance
    )
    record_run(store, trigger, len(suggestions), sample_size)
    return len(suggestions)


@functions_framework.http
def clustering_http(request):
    """
    HTTP handler for manual clustering runs.

    Args:
        request: Flask request

    Returns:
        Tuple of (response, status_code)
    """
    path = request.path.rstrip('/') or '/'

    if path == '/health':
        return {'status': 'ok'}, 200

    if path != '/cluster' or request.method != 'POST':
        return 'Not Found', 404

    settings = ClusteringSettings.from_env()
    body = request.get_json(silent=True) or {}

    try:
        k = _positive_int(body.get('k'), 'k', settings.k)
        sample_size = _positive_int(body.get('sampleSize'), 'sampleSize', settings.sample_size)
    except ValueError as e:
        return {'success': False, 'error': str(e)}, 400

    logger.info(f"Manual clustering triggered: k={k}, sampleSize={sample_size}")

    try:
        clusters = _run('manual', settings, k, sample_size)
    except Exception as e:
        logger.error(f"Clustering failed: {e}", exc_info=True)
        return {'success': False, 'error': str(e)}, 500

    return {
        'success': True,
        'clusters': clusters,
        'message': f"Found {clusters} idea clusters"
    }, 200


@functions_framework.cloud_event
def clustering_scheduled(cloud_event):
    """
    Scheduled handler, triggered weekly through Pub/Sub.

    Failures are logged and re-raised so the platform records the run as
    failed.
    """
    logger.info("Starting scheduled clustering job...")
    settings = ClusteringSettings.from_env()

    try:
        clusters = _run('scheduled', settings, settings.k, settings.sample_size)
    except Exception as e:
        logger.error(f"Clustering failed: {e}", exc_info=True)
        raise

    logger.info(f"Clustering complete. Found {clusters} clusters.")
    return clusters
