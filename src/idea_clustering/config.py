"""
Worker configuration.

Settings come from environment variables so the same code runs as a Cloud
Function, a scheduled job, or a local CLI.
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_K = 8
DEFAULT_SAMPLE_SIZE = 300
MIN_CLUSTER_SIZE = 3
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_TOLERANCE = 0.0001
DEFAULT_TOP_N = 5


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class ClusteringSettings:
    """Runtime settings for the clustering worker."""
    project_id: Optional[str] = None
    service_account_key: Optional[str] = None  # JSON string
    database: str = '(default)'
    k: int = DEFAULT_K
    sample_size: int = DEFAULT_SAMPLE_SIZE
    min_cluster_size: int = MIN_CLUSTER_SIZE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    posts_collection: str = 'userPosts'
    suggestions_collection: str = 'ideaSuggestions'
    stats_document: str = 'system/clusteringStats'

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'ClusteringSettings':
        """
        Load settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ (for tests)

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if env is None else env

        settings = cls(
            project_id=env.get('FIREBASE_PROJECT_ID') or env.get('GCP_PROJECT'),
            service_account_key=env.get('FIREBASE_SERVICE_ACCOUNT_KEY') or None,
            database=env.get('FIRESTORE_DATABASE', '(default)'),
            k=_int_env(env, 'CLUSTER_K', DEFAULT_K),
            sample_size=_int_env(env, 'CLUSTER_SAMPLE_SIZE', DEFAULT_SAMPLE_SIZE),
            min_cluster_size=_int_env(env, 'MIN_CLUSTER_SIZE', MIN_CLUSTER_SIZE),
            max_iterations=_int_env(env, 'CLUSTER_MAX_ITERATIONS', DEFAULT_MAX_ITERATIONS),
            tolerance=_float_env(env, 'CLUSTER_TOLERANCE', DEFAULT_TOLERANCE),
            posts_collection=env.get('POSTS_COLLECTION', 'userPosts'),
            suggestions_collection=env.get('SUGGESTIONS_COLLECTION', 'ideaSuggestions'),
            stats_document=env.get('STATS_DOCUMENT', 'system/clusteringStats'),
        )

        logger.debug(
            f"Loaded settings: project={settings.project_id}, k={settings.k}, "
            f"sample_size={settings.sample_size}"
        )
        return settings
