"""Viewer-side client for the backend's auth routes.

The viewer never talks to Google's token endpoint itself; it goes through
the backend, which holds the OAuth client secret.

- GET  /api/auth/login    -> redirect to the Google consent screen
- POST /api/auth          -> exchange an authorization code
- POST /api/auth/refresh  -> exchange a refresh token for a new access token
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from calendar_sync.config import get_settings
from calendar_sync.errors import RefreshError
from calendar_sync.models.token import TokenGrant

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/login"
EXCHANGE_PATH = "/api/auth"
REFRESH_PATH = "/api/auth/refresh"


class BackendAuthError(Exception):
    """Raised when the backend rejects an auth request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or fallback
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or fallback
    return fallback


def _grant_from_body(body: dict[str, Any]) -> TokenGrant:
    data = body.get("data") or {}
    return TokenGrant(
        access_token=data["access_token"],
        expires_in=int(data["expires_in"]),
        refresh_token=data.get("refresh_token"),
    )


class BackendAuthClient:
    """Calls the backend auth routes.

    Example:
        ```python
        auth = BackendAuthClient("http://localhost:8000")
        print(auth.login_url)
        grant = await auth.exchange_code(code)
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.timeout = settings.request_timeout_seconds
        self._http_client = http_client

    @property
    def login_url(self) -> str:
        """URL that starts the browser login flow."""
        return f"{self.base_url}{LOGIN_PATH}"

    async def _post(self, path: str, payload: dict[str, str]) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload)

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for a token grant.

        Raises:
            BackendAuthError: If the backend rejects the code
        """
        response = await self._post(EXCHANGE_PATH, {"code": code})
        if response.status_code != 200:
            message = _error_message(
                response, "Failed to exchange authorization code for tokens"
            )
            logger.error(f"Code exchange failed: {message}")
            raise BackendAuthError(message, status_code=response.status_code)

        grant = _grant_from_body(response.json())
        if not grant.refresh_token:
            raise BackendAuthError("Backend did not return a refresh token")
        return grant

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token.

        Raises:
            RefreshError: If the backend cannot refresh the token
        """
        try:
            response = await self._post(REFRESH_PATH, {"refresh_token": refresh_token})
        except httpx.HTTPError as e:
            raise RefreshError(f"Failed to refresh token: {e}") from e

        if response.status_code != 200:
            message = _error_message(response, "Failed to refresh token")
            raise RefreshError(message)

        try:
            return _grant_from_body(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise RefreshError("Malformed refresh response") from e
