"""Calendar event routes."""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from calendar_sync.api.responses import success_response, token_from_headers
from calendar_sync.calendar.google_calendar import GoogleCalendarClient
from calendar_sync.errors import AuthError, TransientError
from calendar_sync.models.event import DateRange

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_calendar_client() -> GoogleCalendarClient:
    """Get cached Google Calendar client instance."""
    return GoogleCalendarClient()


def require_access_token(request: Request) -> str:
    """Access token from the request headers, or 400."""
    token = token_from_headers(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "Access token not provided in headers as Authorization "
                "or x-access-token"
            ),
        )
    return token


@router.get("")
async def list_events(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    access_token: str = Depends(require_access_token),
    client: GoogleCalendarClient = Depends(get_calendar_client),
) -> JSONResponse:
    """List calendar events, optionally filtered to inclusive dates."""
    date_range = None
    if start_date or end_date:
        try:
            date_range = DateRange(start=start_date, end=end_date)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=e.errors()[0]["msg"],
            )

    try:
        events = await client.list_events(access_token, date_range)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except TransientError as e:
        logger.error(f"Calendar events fetch error: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        )

    return success_response(events)
