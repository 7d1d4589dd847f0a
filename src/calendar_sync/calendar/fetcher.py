"""Viewer-side event fetching.

Fetches events from the backend's /api/events route with a bearer token.
Failures are classified so the poller can decide between a token refresh
(AuthError) and a plain retry (TransientError).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import httpx

from calendar_sync.config import get_settings
from calendar_sync.errors import AuthError, TransientError, classify_error
from calendar_sync.models.event import CalendarEvent, DateRange

logger = logging.getLogger(__name__)

EVENTS_PATH = "/api/events"
DEFAULT_ERROR = "Failed to fetch calendar events"
MALFORMED_RESPONSE = "Malformed events response"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or DEFAULT_ERROR
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or DEFAULT_ERROR
    return DEFAULT_ERROR


class EventFetcher:
    """Fetches calendar events through the backend.

    Example:
        ```python
        fetcher = EventFetcher("http://localhost:8000")
        events = await fetcher.fetch_events(access_token, DateRange.today())
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

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, **kwargs)

    async def fetch_events(
        self,
        token: str,
        date_range: DateRange | None = None,
    ) -> list[CalendarEvent]:
        """Fetch events with one authenticated request.

        Args:
            token: Access token sent as a bearer token
            date_range: Inclusive date filter (None for no filter)

        Returns:
            Events in the order the upstream API returned them

        Raises:
            AuthError: If the token was rejected
            TransientError: On network failures, other error responses and
                malformed response bodies
        """
        params = date_range.to_query_params() if date_range else {}

        try:
            response = await self._get(
                f"{self.base_url}{EVENTS_PATH}",
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"{DEFAULT_ERROR}: {e}") from e

        if response.status_code >= 400:
            raise classify_error(response.status_code, _error_message(response))

        try:
            body = response.json()
            items = body.get("data") or []
            if not isinstance(items, list):
                raise TypeError(f"Expected a list of events, got {type(items).__name__}")
            return [CalendarEvent.from_api(item) for item in items]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed events response: {e!r}")
            raise TransientError(MALFORMED_RESPONSE) from e


async def fetch_with_refresh(
    fetch: Callable[[str], Awaitable[list[CalendarEvent]]],
    token: str,
    refresh: Callable[[], Awaitable[str]],
) -> list[CalendarEvent]:
    """Fetch once, and after an AuthError refresh and retry exactly once.

    A failure of the retry propagates unchanged, whatever its type.

    Raises:
        RefreshError: If the token refresh fails (no retry is made)
    """
    try:
        return await fetch(token)
    except AuthError as e:
        logger.info(f"Events request rejected ({e}), refreshing token and retrying")

    new_token = await refresh()
    return await fetch(new_token)
