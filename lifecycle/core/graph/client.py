"""Low-level HTTP client for the Microsoft Graph API.

One ``request()`` path handles the bearer token, throttling and error
translation; the verb helpers and ``get_all()`` pagination sit on top of it.
"""
from __future__ import annotations
import logging
import os
import time
from typing import Optional, Dict, Any, Iterator
from datetime import datetime, timedelta

import jwt
import requests

from .exceptions import DirectoryAPIError, NotAuthenticatedError

REQUEST_TIMEOUT = 30
GRAPH_API_URL = "https://graph.microsoft.com/v1.0"
GRAPH_LOGIN_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Graph throttles with 429 (and occasionally 503/504) plus a Retry-After header
RETRY_STATUSES = (429, 503, 504)
MAX_RETRIES = 3

logger = logging.getLogger(__name__)


class GraphClient:
    """Microsoft Graph client authenticated as an application.

    Usage:
        client = GraphClient()
        client.authenticate_client_credentials(tenant_id, client_id, client_secret)
        user = client.get("/users/alice@contoso.com").json()
        for group in client.get_all("/groups"):
            ...
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        login_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Args:
            base_url: Graph API root (defaults to GRAPH_API_URL env var)
            login_url: Identity platform root (defaults to GRAPH_LOGIN_URL env var)
            timeout: Per-request timeout in seconds
        """
        self.base_url = (base_url or os.environ.get("GRAPH_API_URL", GRAPH_API_URL)).rstrip("/")
        self.login_url = (login_url or os.environ.get("GRAPH_LOGIN_URL", GRAPH_LOGIN_URL)).rstrip("/")
        self.timeout = timeout or REQUEST_TIMEOUT
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._credentials: Dict[str, str] = {}

    # ─────────────────────────────────────────────────────────────────────
    # Token handling
    # ─────────────────────────────────────────────────────────────────────

    def authenticate_client_credentials(self, tenant_id: str, client_id: str, client_secret: str) -> str:
        """Acquire an application token; the credentials are kept for renewal.

        Raises:
            DirectoryAPIError: If the identity platform rejects the credentials
        """
        self._credentials = {"tenant_id": tenant_id, "client_id": client_id, "client_secret": client_secret}
        self._renew()
        return self._token

    def is_authenticated(self) -> bool:
        return bool(self._token) or bool(self._credentials)

    def session_claims(self) -> Dict[str, Any]:
        """Unverified claims of the current token (tenant id, app name).

        The token came straight from the identity platform; it is only read
        here to report which tenant and application the run is bound to.
        """
        if not self._token:
            return {}
        try:
            return jwt.decode(self._token, options={"verify_signature": False})
        except jwt.DecodeError:
            return {}

    def _renew(self) -> None:
        url = f"{self.login_url}/{self._credentials['tenant_id']}/oauth2/v2.0/token"
        resp = requests.post(
            url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._credentials["client_id"],
                "client_secret": self._credentials["client_secret"],
                "scope": GRAPH_SCOPE,
            },
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            raise DirectoryAPIError(resp.status_code, resp.text, url)
        body = resp.json()
        self._token = body["access_token"]
        self._expires_at = datetime.now() + timedelta(seconds=int(body.get("expires_in", 3600)))

    def _bearer(self) -> str:
        if not self._token or not self._expires_at:
            raise NotAuthenticatedError("No Graph token; call authenticate_client_credentials() first")
        # Renew a minute early so a long batch never sends an expired token
        if self._credentials and datetime.now() >= self._expires_at - timedelta(seconds=60):
            logger.debug("Graph token about to expire; renewing")
            self._renew()
        return f"Bearer {self._token}"

    # ─────────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────────

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Send one request, waiting out throttling responses.

        Args:
            method: HTTP verb (get, post, patch, put, delete)
            path: Path under ``base_url`` or an absolute URL (``@odata.nextLink``)
            **kwargs: Passed to requests (params, json, headers)

        Raises:
            NotAuthenticatedError: Before authentication
            DirectoryAPIError: On a 4xx/5xx answer
        """
        url = path if path.startswith(("https://", "http://")) else f"{self.base_url}{path}"
        send = getattr(requests, method.lower())
        extra_headers = kwargs.pop("headers", None) or {}
        for attempt in range(MAX_RETRIES + 1):
            headers = {**extra_headers, "Authorization": self._bearer()}
            resp = send(url, headers=headers, timeout=self.timeout, **kwargs)
            if resp.status_code not in RETRY_STATUSES or attempt == MAX_RETRIES:
                break
            delay = _retry_after(resp, attempt)
            logger.warning("Graph returned %s for %s %s; retrying in %ss", resp.status_code, method.upper(), url, delay)
            time.sleep(delay)
        self._raise_for_status(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self.request("get", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self.request("post", path, json=json, **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self.request("patch", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self.request("put", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self.request("delete", path, **kwargs)

    def get_all(self, path: str, params: Optional[Dict] = None) -> Iterator[dict]:
        """Yield every item of a collection, following ``@odata.nextLink``."""
        body = self.get(path, params=params).json() or {}
        while True:
            yield from body.get("value", [])
            next_link = body.get("@odata.nextLink")
            if not next_link:
                return
            body = self.get(next_link).json() or {}

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        """Turn an error answer into DirectoryAPIError, preferring Graph's error.message."""
        if resp.status_code < 400:
            return
        message = resp.text
        try:
            message = ((resp.json() or {}).get("error") or {}).get("message") or message
        except ValueError:
            pass
        raise DirectoryAPIError(resp.status_code, message, resp.url)


def _retry_after(resp: requests.Response, attempt: int) -> int:
    headers = getattr(resp, "headers", None) or {}
    try:
        return max(int(headers.get("Retry-After", "")), 1)
    except ValueError:
        return 2 ** attempt


def create_client_with_token(token: str, expires_in: int = 3600, base_url: Optional[str] = None) -> GraphClient:
    """Wrap a token obtained elsewhere (e.g. ``az account get-access-token``).

    The client cannot renew it: once it expires, requests fail with 401.
    """
    client = GraphClient(base_url)
    client._token = token
    client._expires_at = datetime.now() + timedelta(seconds=expires_in)
    return client
