"""Tests for the viewer-side event fetcher."""

from datetime import date

import httpx
import pytest

from calendar_sync.calendar.fetcher import EventFetcher, fetch_with_refresh
from calendar_sync.errors import AuthError, RefreshError, TransientError
from calendar_sync.models.event import DateRange

from conftest import BACKEND_URL, google_event


def events_response(*events) -> httpx.Response:
    return httpx.Response(200, json={"data": list(events), "message": None})


class TestFetchEvents:
    """Tests for EventFetcher.fetch_events."""

    @pytest.mark.asyncio
    async def test_events_in_upstream_order(self, mock_http):
        """Test that events keep the order the backend returned."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return events_response(
                google_event("b", "Second", start="2024-01-01T11:00:00Z"),
                google_event("a", "First", start="2024-01-01T09:00:00Z"),
                google_event("c", "Third", start="2024-01-01T10:00:00Z"),
            )

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        events = await fetcher.fetch_events("tok")

        assert [e.id for e in events] == ["b", "a", "c"]
        assert len(requests) == 1
        assert requests[0].url.path == "/api/events"
        assert requests[0].headers["Authorization"] == "Bearer tok"
        assert requests[0].url.params == httpx.QueryParams()

    @pytest.mark.asyncio
    async def test_date_range_sent_as_dates(self, mock_http):
        """Test the startDate/endDate query parameters."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return events_response()

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        events = await fetcher.fetch_events(
            "tok", DateRange(start=date(2024, 1, 1), end=date(2024, 1, 7))
        )

        assert events == []
        assert seen == {"startDate": "2024-01-01", "endDate": "2024-01-07"}

    @pytest.mark.asyncio
    async def test_unauthorized_is_auth_error(self, mock_http):
        def handler(request):
            return httpx.Response(401, json={"error": "Invalid Credentials"})

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        with pytest.raises(AuthError, match="Invalid Credentials"):
            await fetcher.fetch_events("expired")

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, mock_http):
        def handler(request):
            return httpx.Response(502, json={"error": "Bad gateway", "message": "Backend Error"})

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        with pytest.raises(TransientError, match="Backend Error") as exc_info:
            await fetcher.fetch_events("tok")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, mock_http):
        def handler(request):
            return httpx.Response(500, text="boom")

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        with pytest.raises(TransientError, match="boom"):
            await fetcher.fetch_events("tok")

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, mock_http):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        with pytest.raises(TransientError, match="connection refused"):
            await fetcher.fetch_events("tok")


class TestFetchWithRefresh:
    """Tests for the single refresh-and-retry rule."""

    @pytest.mark.asyncio
    async def test_success_needs_no_refresh(self):
        refreshes = []

        async def fetch(token):
            return [token]

        async def refresh():
            refreshes.append(1)
            return "new"

        assert await fetch_with_refresh(fetch, "old", refresh) == ["old"]
        assert refreshes == []

    @pytest.mark.asyncio
    async def test_auth_error_refreshes_and_retries_once(self):
        tokens_used = []

        async def fetch(token):
            tokens_used.append(token)
            if token == "old":
                raise AuthError("401 Unauthorized", status_code=401)
            return ["ok"]

        async def refresh():
            return "new"

        assert await fetch_with_refresh(fetch, "old", refresh) == ["ok"]
        assert tokens_used == ["old", "new"]

    @pytest.mark.asyncio
    async def test_repeated_auth_error_is_not_retried_again(self):
        """Test that a failing retry propagates instead of looping."""
        calls = []
        refreshes = []

        async def fetch(token):
            calls.append(token)
            raise AuthError("Invalid token", status_code=401)

        async def refresh():
            refreshes.append(1)
            return f"new-{len(refreshes)}"

        with pytest.raises(AuthError):
            await fetch_with_refresh(fetch, "old", refresh)

        assert calls == ["old", "new-1"]
        assert len(refreshes) == 1

    @pytest.mark.asyncio
    async def test_refresh_failure_skips_retry(self):
        calls = []

        async def fetch(token):
            calls.append(token)
            raise AuthError("401", status_code=401)

        async def refresh():
            raise RefreshError("Failed to refresh token")

        with pytest.raises(RefreshError):
            await fetch_with_refresh(fetch, "old", refresh)
        assert calls == ["old"]

    @pytest.mark.asyncio
    async def test_transient_error_not_refreshed(self):
        async def fetch(token):
            raise TransientError("Backend Error", status_code=500)

        async def refresh():
            raise AssertionError("must not refresh")

        with pytest.raises(TransientError):
            await fetch_with_refresh(fetch, "old", refresh)


class TestMalformedResponses:
    """Tests for bodies the fetcher cannot turn into events."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            [],
            {"data": {"id": "1"}},
            {"data": [{"summary": "No id"}]},
            {"data": ["not-an-event"]},
        ],
    )
    async def test_malformed_body_is_transient(self, mock_http, body):
        """Test that unusable success bodies surface as a retryable failure."""
        fetcher = EventFetcher(
            BACKEND_URL,
            http_client=mock_http(lambda request: httpx.Response(200, json=body)),
        )
        with pytest.raises(TransientError, match="Malformed events response"):
            await fetcher.fetch_events("tok")

    @pytest.mark.asyncio
    async def test_invalid_json_is_transient(self, mock_http):
        fetcher = EventFetcher(
            BACKEND_URL,
            http_client=mock_http(lambda request: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(TransientError):
            await fetcher.fetch_events("tok")

    @pytest.mark.asyncio
    async def test_unparsable_time_keeps_event(self, mock_http):
        """Test that one bad timestamp does not drop the whole list."""

        def handler(request):
            return events_response(
                google_event("1", "Good"),
                {"id": "2", "summary": "Bad", "start": {"dateTime": "not-a-date"}},
            )

        fetcher = EventFetcher(BACKEND_URL, http_client=mock_http(handler))
        events = await fetcher.fetch_events("tok")

        assert [e.id for e in events] == ["1", "2"]
        assert events[1].start is None
