"""Google Calendar API client.

Provides the two calls the backend needs:
- List events (recurring events expanded, ordered by start time)
- Watch for changes (webhook channel registration)

## API Documentation

https://developers.google.com/calendar/api/v3/reference

## Authentication

Every call carries the viewer's OAuth access token as a bearer token. The
backend does not refresh tokens on its own; an expired token surfaces as an
AuthError so the viewer can refresh and retry.

## Date Filtering

Dates are inclusive calendar days. The first day starts at 00:00:00.000
and the last day ends at 23:59:59.999, both in the configured time zone
(system local time when TIME_ZONE is unset).
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from calendar_sync.config import get_settings
from calendar_sync.errors import TransientError, classify_error
from calendar_sync.models.event import DateRange, resolve_timezone

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_URL = "https://www.googleapis.com/calendar/v3"
WEBHOOK_TYPE = "web_hook"
CHANNEL_ID_PREFIX = "calendar-watch-"


def format_rfc3339(value: datetime) -> str:
    """Format a timezone-aware datetime with millisecond precision."""
    return value.isoformat(timespec="milliseconds")


def channel_id_for_user(user_id: str) -> str:
    """Build the watch channel ID for a user."""
    return f"{CHANNEL_ID_PREFIX}{user_id}"


def user_id_from_channel_id(channel_id: str | None) -> str | None:
    """Recover the user ID from a watch channel ID, if it is one of ours."""
    if not channel_id or not channel_id.startswith(CHANNEL_ID_PREFIX):
        return None
    return channel_id[len(CHANNEL_ID_PREFIX):] or None


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Calendar API request failed: {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return f"Calendar API request failed: {response.status_code}"


class GoogleCalendarClient:
    """Client for Google Calendar API.

    Example:
        ```python
        client = GoogleCalendarClient()

        items = await client.list_events(access_token, DateRange.today())
        await client.watch(access_token, channel_id, webhook_url)
        ```
    """

    def __init__(
        self,
        calendar_id: str | None = None,
        max_results: int | None = None,
        time_zone: tzinfo | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            calendar_id: Calendar to read (default from settings, 'primary')
            max_results: Result cap per request (default from settings)
            time_zone: Zone date filters are interpreted in (default from settings)
            http_client: Shared HTTP client (a short-lived one per call if omitted)
        """
        settings = get_settings()
        self.calendar_id = calendar_id or settings.calendar_id
        self.max_results = max_results or settings.max_results
        self.time_zone = time_zone or resolve_timezone(settings.time_zone)
        self.timeout = settings.request_timeout_seconds
        self._http_client = http_client

    @property
    def _calendar_url(self) -> str:
        return f"{GOOGLE_CALENDAR_API_URL}/calendars/{quote(self.calendar_id, safe='')}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, **kwargs)

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            response = await self._send(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransientError(f"Calendar API unreachable: {e}") from e

        if response.status_code >= 400:
            message = _upstream_message(response)
            logger.warning(
                f"Calendar API {method} {url} failed ({response.status_code}): {message}"
            )
            raise classify_error(response.status_code, message)

        try:
            body = response.json()
        except ValueError as e:
            raise TransientError("Malformed Calendar API response") from e
        if not isinstance(body, dict):
            raise TransientError("Malformed Calendar API response")
        return body

    def build_list_params(self, date_range: DateRange | None = None) -> dict[str, Any]:
        """Query parameters for an events listing."""
        params: dict[str, Any] = {
            "maxResults": self.max_results,
            "singleEvents": "true",  # Expand recurring events
            "orderBy": "startTime",
        }

        if date_range is not None:
            time_min, time_max = date_range.to_time_bounds(self.time_zone)
            if time_min is not None:
                params["timeMin"] = format_rfc3339(time_min)
            if time_max is not None:
                params["timeMax"] = format_rfc3339(time_max)

        return params

    async def list_events(
        self,
        access_token: str,
        date_range: DateRange | None = None,
    ) -> list[dict[str, Any]]:
        """List events, optionally limited to a date range.

        Args:
            access_token: The viewer's OAuth access token
            date_range: Inclusive day filter (None for no filter)

        Returns:
            Raw event resources in upstream order (by start time)

        Raises:
            AuthError: If Google rejects the access token
            TransientError: On any other upstream failure
        """
        result = await self._request(
            "GET",
            f"{self._calendar_url}/events",
            access_token,
            params=self.build_list_params(date_range),
        )
        items = result.get("items", [])
        logger.debug(f"Fetched {len(items)} events from calendar {self.calendar_id}")
        return items

    async def watch(
        self,
        access_token: str,
        channel_id: str,
        webhook_url: str,
    ) -> dict[str, Any]:
        """Set up push notifications for the calendar.

        Args:
            access_token: The viewer's OAuth access token
            channel_id: Unique channel identifier
            webhook_url: URL to receive notifications

        Returns:
            Watch response with resourceId and expiration
        """
        body = {
            "id": channel_id,
            "type": WEBHOOK_TYPE,
            "address": webhook_url,
        }

        result = await self._request(
            "POST",
            f"{self._calendar_url}/events/watch",
            access_token,
            json=body,
        )
        logger.info(f"Registered watch channel {channel_id}")
        return result
