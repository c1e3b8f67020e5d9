"""
Google service-account authentication.

Signs an RS256 JWT with the service account's private key and exchanges it
for an OAuth2 access token. Tokens are kept in an explicit TokenCache that the
caller owns, and reused until shortly before they expire.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import jwt
import requests
from google.oauth2.credentials import Credentials

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = [
    'https://www.googleapis.com/auth/datastore',
    'https://www.googleapis.com/auth/cloud-platform',
]
JWT_BEARER_GRANT = 'urn:ietf:params:oauth:grant-type:jwt-bearer'
ASSERTION_LIFETIME_SEC = 3600
REFRESH_MARGIN_SEC = 60


class AuthenticationError(Exception):
    """Raised when the token endpoint rejects the JWT assertion."""


@dataclass
class CachedToken:
    token: str
    expires_at: float  # unix seconds


class TokenCache:
    """
    Holds one access token and its expiry.

    A cached token is only handed out while more than ``refresh_margin``
    seconds of validity remain.
    """

    def __init__(
        self,
        refresh_margin: float = REFRESH_MARGIN_SEC,
        clock: Callable[[], float] = time.time
    ):
        self.refresh_margin = refresh_margin
        self.clock = clock
        self._entry: Optional[CachedToken] = None

    def get(self) -> Optional[str]:
        if self._entry is None:
            return None
        if self.clock() >= self._entry.expires_at - self.refresh_margin:
            return None
        return self._entry.token

    def put(self, token: str, expires_in: float) -> None:
        self._entry = CachedToken(token=token, expires_at=self.clock() + expires_in)

    def clear(self) -> None:
        self._entry = None


class ServiceAccountTokenProvider:
    """
    Issues Google access tokens for a service account.

    Args:
        service_account_info: Parsed service account key, or its JSON string
        scopes: OAuth scopes to request
        cache: Token cache (a private one is created if omitted)
        session: requests session used for the token exchange
    """

    def __init__(
        self,
        service_account_info: Union[str, Dict[str, Any]],
        scopes: Optional[List[str]] = None,
        cache: Optional[TokenCache] = None,
        session: Optional[requests.Session] = None
    ):
        if isinstance(service_account_info, str):
            service_account_info = json.loads(service_account_info)

        missing = [
            key for key in ('client_email', 'private_key', 'token_uri')
            if not service_account_info.get(key)
        ]
        if missing:
            raise ValueError(f"Service account key is missing fields: {', '.join(missing)}")

        self.info = service_account_info
        self.scopes = scopes or list(DEFAULT_SCOPES)
        self.cache = cache if cache is not None else TokenCache()
        self.session = session or requests.Session()

    def create_signed_jwt(self, now: Optional[int] = None) -> str:
        """Build the RS256-signed assertion for the token endpoint."""
        now = int(time.time()) if now is None else now
        email = self.info['client_email']

        payload = {
            'iss': email,
            'sub': email,
            'aud': self.info['token_uri'],
            'iat': now,
            'exp': now + ASSERTION_LIFETIME_SEC,
            'scope': ' '.join(self.scopes),
        }
        headers = {}
        if self.info.get('private_key_id'):
            headers['kid'] = self.info['private_key_id']

        return jwt.encode(payload, self.info['private_key'], algorithm='RS256', headers=headers)

    def get_access_token(self, max_retries: int = 3, timeout: int = 30) -> str:
        """
        Return a valid access token, exchanging a new JWT if needed.

        Raises:
            AuthenticationError: Token endpoint returned an error response
            requests.RequestException: Network failure after all retries
        """
        cached = self.cache.get()
        if cached:
            return cached

        assertion = self.create_signed_jwt()
        data = {'grant_type': JWT_BEARER_GRANT, 'assertion': assertion}

        for attempt in range(max_retries):
            try:
                response = self.session.post(self.info['token_uri'], data=data, timeout=timeout)
            except requests.exceptions.RequestException as e:
                logger.error(f"Token request failed: {e} (attempt {attempt + 1}/{max_retries})")
                if attempt == max_retries - 1:
                    raise
                time.sleep(2**attempt)
                continue

            if response.status_code == 429 or response.status_code >= 500:
                retry_after = int(response.headers.get('Retry-After', 2**attempt))
                logger.warning(
                    f"Token endpoint returned {response.status_code}, retrying after {retry_after}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                if attempt < max_retries - 1:
                    time.sleep(retry_after)
                    continue

            if not response.ok:
                raise AuthenticationError(f"Failed to get access token: {response.text}")

            body = response.json()
            self.cache.put(body['access_token'], float(body.get('expires_in', 3600)))
            logger.info(f"Obtained access token for {self.info['client_email']}")
            return body['access_token']

        raise AuthenticationError("Max retries exceeded")

    def credentials(self) -> Credentials:
        """Wrap the current access token for google-cloud clients."""
        return Credentials(token=self.get_access_token())
