"""Google OAuth authentication.

Implements the OAuth 2.0 authorization code flow for Google sign-in.

## Required Setup

1. Create a project in Google Cloud Console
2. Enable Google Calendar API
3. Create OAuth 2.0 credentials (Web application)
4. Add the authorized redirect URI
5. Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REDIRECT_URI

## OAuth Endpoints

- Authorization: https://accounts.google.com/o/oauth2/v2/auth
- Token: https://oauth2.googleapis.com/token
- Token info: https://oauth2.googleapis.com/tokeninfo

## Scopes Used

- https://www.googleapis.com/auth/calendar.readonly: Read calendar data
- https://www.googleapis.com/auth/userinfo.profile: Display name
- https://www.googleapis.com/auth/userinfo.email: Identify the user

Consent is forced on every login so Google always returns a refresh token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any
from urllib.parse import urlencode

import httpx

from calendar_sync.config import get_settings
from calendar_sync.errors import CalendarSyncError, ConfigError

logger = logging.getLogger(__name__)

# Google OAuth endpoints
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

ACCESS_TYPE = "offline"
PROMPT_TYPE = "consent"


class GoogleAuthError(CalendarSyncError):
    """Raised when Google rejects a token request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GoogleTokens:
    """OAuth tokens from Google."""

    access_token: str
    refresh_token: str | None
    expires_in: int
    token_type: str
    scope: str

    @classmethod
    def from_api(
        cls, data: dict[str, Any], refresh_token: str | None = None
    ) -> GoogleTokens:
        """Create from a token endpoint response."""
        return cls(
            access_token=data["access_token"],
            # Google may not return a new refresh token
            refresh_token=data.get("refresh_token", refresh_token),
            expires_in=int(data.get("expires_in", 3600)),
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope", ""),
        )


class GoogleOAuth:
    """Google OAuth 2.0 client.

    Example:
        ```python
        oauth = GoogleOAuth()

        # Generate authorization URL
        auth_url = oauth.get_authorization_url()
        # Redirect user to auth_url

        # Handle callback
        tokens = await oauth.exchange_code(code)
        ```
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize Google OAuth client.

        Args:
            client_id: Google OAuth client ID (or from settings)
            client_secret: Google OAuth client secret (or from settings)
            redirect_uri: OAuth callback URL (or from settings)
            scopes: OAuth scopes to request (or from settings)
            http_client: Shared HTTP client (a short-lived one per call if omitted)
        """
        settings = get_settings()

        self.client_id = client_id or settings.google_client_id
        self.client_secret = client_secret or settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self.scopes = scopes or list(settings.google_scopes)
        self.timeout = settings.request_timeout_seconds
        self._http_client = http_client

        if not self.is_configured:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET and GOOGLE_REDIRECT_URI environment variables."
            )

    @property
    def is_configured(self) -> bool:
        """Check if Google OAuth is properly configured."""
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ConfigError("Google OAuth not configured")

    async def _post_token(self, data: dict[str, str]) -> dict[str, Any]:
        if self._http_client is not None:
            response = await self._http_client.post(GOOGLE_TOKEN_URL, data=data)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)

        if response.status_code != 200:
            logger.error(
                f"Token request ({data['grant_type']}) failed: {response.text}"
            )
            raise GoogleAuthError(
                f"Token request failed: {response.status_code}",
                status_code=response.status_code,
            )

        return response.json()

    def get_authorization_url(self, state: str | None = None) -> str:
        """Generate the Google OAuth authorization URL.

        Args:
            state: Optional opaque value echoed back to the callback

        Returns:
            URL to redirect the user to
        """
        self._require_configured()

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": ACCESS_TYPE,
            "prompt": PROMPT_TYPE,
        }
        if state:
            params["state"] = state

        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleTokens:
        """Exchange authorization code for tokens.

        Args:
            code: Authorization code from callback

        Returns:
            GoogleTokens with access and refresh tokens

        Raises:
            GoogleAuthError: If token exchange fails
        """
        self._require_configured()

        data = await self._post_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            }
        )
        return GoogleTokens.from_api(data)

    async def refresh_access_token(self, refresh_token: str) -> GoogleTokens:
        """Refresh an expired access token.

        Args:
            refresh_token: The refresh token

        Returns:
            New GoogleTokens (refresh_token may be the same)

        Raises:
            GoogleAuthError: If refresh fails
        """
        self._require_configured()

        data = await self._post_token(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        return GoogleTokens.from_api(data, refresh_token=refresh_token)

    async def get_token_info(self, access_token: str) -> dict[str, Any]:
        """Look up the user and scopes behind an access token.

        Raises:
            GoogleAuthError: If Google does not recognize the token
        """
        params = {"access_token": access_token}
        if self._http_client is not None:
            response = await self._http_client.get(GOOGLE_TOKENINFO_URL, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(GOOGLE_TOKENINFO_URL, params=params)

        if response.status_code != 200:
            logger.error(f"Token info request failed: {response.text}")
            raise GoogleAuthError(
                f"Token info request failed: {response.status_code}",
                status_code=response.status_code,
            )

        return response.json()


@lru_cache
def get_google_oauth() -> GoogleOAuth:
    """Get cached Google OAuth client instance."""
    return GoogleOAuth()
