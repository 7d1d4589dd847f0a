"""Push notification routes.

- GET /api/watch - Register a webhook channel for the user's calendar
- POST /api/webhook - Receive change notifications from Google

The viewer does not consume push notifications; it keeps polling. These
routes only register a channel and log what arrives on it.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from calendar_sync.api.responses import success_response
from calendar_sync.api.routes.events import get_calendar_client, require_access_token
from calendar_sync.auth.google import GoogleAuthError, GoogleOAuth, get_google_oauth
from calendar_sync.calendar.google_calendar import (
    GoogleCalendarClient,
    channel_id_for_user,
    user_id_from_channel_id,
)
from calendar_sync.config import get_settings
from calendar_sync.errors import AuthError, TransientError

logger = logging.getLogger(__name__)

router = APIRouter()

UNKNOWN_USER = "unknown"


@router.get("/watch")
async def watch_calendar(
    access_token: str = Depends(require_access_token),
    oauth: GoogleOAuth = Depends(get_google_oauth),
    client: GoogleCalendarClient = Depends(get_calendar_client),
) -> JSONResponse:
    """Register a webhook channel for the token owner's calendar."""
    settings = get_settings()
    if not settings.webhook_url:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="WEBHOOK_URL environment variable is not configured",
        )

    try:
        token_info = await oauth.get_token_info(access_token)
    except GoogleAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )

    user_id = token_info.get("sub") or token_info.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unable to retrieve user ID from token",
        )

    try:
        channel = await client.watch(
            access_token,
            channel_id=channel_id_for_user(user_id),
            webhook_url=settings.webhook_url,
        )
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except TransientError as e:
        logger.error(f"Calendar watch setup error: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return success_response(channel, message="Calendar watch registered")


async def _read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body is not valid JSON",
        )
    return body if isinstance(body, dict) else {}


@router.post("/webhook")
async def receive_webhook(request: Request) -> JSONResponse:
    """Acknowledge a push notification.

    Google sends the channel in X-Goog-* headers; a JSON body with `id` and
    `resourceId` is accepted as well.
    """
    body = await _read_body(request)

    channel_id = body.get("id") or request.headers.get("x-goog-channel-id")
    resource_id = body.get("resourceId") or request.headers.get("x-goog-resource-id")
    user_id = user_id_from_channel_id(channel_id) or UNKNOWN_USER

    logger.info(
        f"Webhook received for user: {user_id} "
        f"(channel={channel_id}, resource={resource_id}, "
        f"state={request.headers.get('x-goog-resource-state')})"
    )

    return success_response(
        {"message": "Webhook processed successfully", "user_id": user_id},
        message="Webhook received and processed",
    )
