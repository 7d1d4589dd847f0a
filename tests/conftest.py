"""Pytest fixtures for calendar sync tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Google, the backend)
2. No real session file is touched
3. Time is simulated, nothing actually sleeps
"""

import os
from collections.abc import Callable

import httpx
import pytest

# Set test environment BEFORE importing application modules
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GOOGLE_REDIRECT_URI", "http://localhost:3000/oauth2callback")
os.environ.setdefault("WEBHOOK_URL", "https://example.com/api/webhook")
os.environ.setdefault("BACKEND_URL", "http://backend.test")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from calendar_sync.auth.tokens import TokenStore
from calendar_sync.calendar.poller import Timer
from calendar_sync.models.token import TokenGrant
from calendar_sync.storage.kv import MemoryKeyValueStore

BACKEND_URL = "http://backend.test"
NOW_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset cached settings and clients before each test."""
    from calendar_sync.api.routes.events import get_calendar_client
    from calendar_sync.auth.google import get_google_oauth
    from calendar_sync.config import get_settings

    for cached in (get_settings, get_google_oauth, get_calendar_client):
        cached.cache_clear()
    yield
    for cached in (get_settings, get_google_oauth, get_calendar_client):
        cached.cache_clear()


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeTimer(Timer):
    """Monotonic timer whose sleeps return immediately and advance time."""

    def __init__(self):
        self.current = 0.0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


# =============================================================================
# Token store
# =============================================================================


class FakeRefresher:
    """Stands in for the backend refresh call and counts invocations."""

    def __init__(self, grant: TokenGrant | None = None, error: Exception | None = None):
        self.grant = grant or TokenGrant(access_token="refreshed-access-token", expires_in=3600)
        self.error = error
        self.calls: list[str] = []

    async def __call__(self, refresh_token: str) -> TokenGrant:
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return self.grant


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def refresher() -> FakeRefresher:
    return FakeRefresher()


@pytest.fixture
def token_store(
    kv_store: MemoryKeyValueStore, refresher: FakeRefresher, clock: FakeClock
) -> TokenStore:
    return TokenStore(kv_store, refresher=refresher, clock=clock)


@pytest.fixture
def signed_in(token_store: TokenStore) -> TokenStore:
    """Token store holding a session valid for another hour."""
    token_store.save("test-access-token", "test-refresh-token", 3600)
    return token_store


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by a handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


def replay(response: httpx.Response) -> httpx.Response:
    """Fresh copy of a scripted response, so one script can answer many requests."""
    return httpx.Response(
        response.status_code, headers=response.headers, content=response.content
    )


def google_event(
    event_id: str,
    summary: str | None = "Event",
    start: str = "2024-01-01T09:00:00-05:00",
    end: str | None = "2024-01-01T10:00:00-05:00",
    **extra,
) -> dict:
    """Minimal Google Calendar event resource."""
    key = "date" if len(start) == 10 else "dateTime"
    event = {"kind": "calendar#event", "id": event_id, "start": {key: start}, **extra}
    if summary is not None:
        event["summary"] = summary
    if end is not None:
        event["end"] = {key: end}
    return event
