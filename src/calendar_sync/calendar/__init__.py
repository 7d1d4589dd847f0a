"""Calendar integration module.

Backend side:
- GoogleCalendarClient: lists events and registers watch channels

Viewer side:
- EventFetcher: fetches events from the backend with a bearer token
- Poller: keeps the displayed events fresh
- render: plain-text presentation

## Polling

Events are re-fetched every 30 seconds. Results younger than 10 seconds are
served from a cache keyed by the date filter. Changing the filter re-triggers
immediately and supersedes any in-flight request.
"""

from calendar_sync.calendar.fetcher import (
    EventFetcher,
    fetch_with_refresh,
)
from calendar_sync.calendar.google_calendar import (
    GoogleCalendarClient,
    channel_id_for_user,
    user_id_from_channel_id,
)
from calendar_sync.calendar.poller import (
    AsyncioTimer,
    PollSnapshot,
    PollState,
    Poller,
    Timer,
)

__all__ = [
    "EventFetcher",
    "fetch_with_refresh",
    "GoogleCalendarClient",
    "channel_id_for_user",
    "user_id_from_channel_id",
    "AsyncioTimer",
    "PollSnapshot",
    "PollState",
    "Poller",
    "Timer",
]
