"""Authentication module for calendar sync.

Provides the Google OAuth client used by the backend and the token store
used by the viewer.

## OAuth Flow

1. User opens /api/auth/login
2. Redirect to Google OAuth consent screen (offline access, forced consent)
3. Google redirects back with an authorization code
4. The viewer posts the code to /api/auth
5. The backend exchanges it for an access token and a refresh token
6. The viewer persists both together with the access token's expiry

## Scopes

We request minimal scopes:
- calendar.readonly: To read calendar events
- userinfo.profile: For display name
- userinfo.email: To identify the user
"""

from calendar_sync.auth.backend import (
    BackendAuthClient,
    BackendAuthError,
)
from calendar_sync.auth.google import (
    GoogleAuthError,
    GoogleOAuth,
    GoogleTokens,
    get_google_oauth,
)
from calendar_sync.auth.tokens import (
    TokenStore,
    epoch_ms,
)

__all__ = [
    "BackendAuthClient",
    "BackendAuthError",
    "GoogleAuthError",
    "GoogleOAuth",
    "GoogleTokens",
    "get_google_oauth",
    "TokenStore",
    "epoch_ms",
]
