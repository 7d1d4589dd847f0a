"""Authentication routes.

Brokers the Google OAuth flow for the viewer. The backend keeps no session
state; tokens are handed to the viewer, which persists them itself.

## OAuth Flow

1. GET /api/auth/login - Redirect to Google consent screen
2. POST /api/auth - Exchange the authorization code for tokens
3. POST /api/auth/refresh - Exchange a refresh token for a new access token
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from calendar_sync.api.responses import success_response
from calendar_sync.auth.google import GoogleAuthError, GoogleOAuth, get_google_oauth
from calendar_sync.errors import ConfigError

logger = logging.getLogger(__name__)

router = APIRouter()


class CodeExchangeRequest(BaseModel):
    """Authorization code posted by the viewer."""

    code: str | None = None


class RefreshRequest(BaseModel):
    """Refresh token posted by the viewer."""

    refresh_token: str | None = None


@router.get("/login")
async def login(
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> RedirectResponse:
    """Initiate Google OAuth login.

    Redirects the user to Google's consent screen requesting offline access.
    """
    try:
        auth_url = oauth.get_authorization_url()
    except ConfigError as e:
        logger.error(f"Auth URL generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Google OAuth not configured",
        )

    return RedirectResponse(url=auth_url)


@router.post("")
async def exchange_code(
    body: CodeExchangeRequest,
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> JSONResponse:
    """Exchange an authorization code for access and refresh tokens."""
    if not body.code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Authorization code is required",
        )

    try:
        tokens = await oauth.exchange_code(body.code)
    except GoogleAuthError as e:
        logger.error(f"Token exchange failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to exchange authorization code for tokens",
        )

    return success_response(
        {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "expires_in": tokens.expires_in,
        }
    )


@router.post("/refresh")
async def refresh_token(
    body: RefreshRequest,
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> JSONResponse:
    """Exchange a refresh token for a new access token."""
    if not body.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Refresh token is required",
        )

    try:
        tokens = await oauth.refresh_access_token(body.refresh_token)
    except GoogleAuthError as e:
        logger.error(f"Token refresh failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Failed to refresh access token",
        )

    data = {
        "access_token": tokens.access_token,
        "expires_in": tokens.expires_in,
    }
    if tokens.refresh_token and tokens.refresh_token != body.refresh_token:
        data["refresh_token"] = tokens.refresh_token

    return success_response(data)
