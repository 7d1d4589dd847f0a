"""Timer-driven event polling.

The poller keeps the displayed events fresh and feeds snapshots to the
presentation layer.

## States

    IDLE -> FETCHING -> SUCCESS | FAILED -> (interval) -> FETCHING

- IDLE: no session, nothing to fetch
- FETCHING: a trigger cycle is running (previous events stay visible)
- SUCCESS: events for the current date range are displayed
- FAILED: the cycle gave up; the next trigger starts over

## Trigger Cycle

1. Serve the cached result when it is younger than the staleness window
   (explicit `force` polls skip this)
2. Get a valid token (refreshing proactively when it is about to expire)
3. Fetch; after an AuthError refresh once and retry once
4. TransientErrors are retried with exponential backoff, AuthErrors after the
   single retry and RefreshErrors are not retried at all
5. Publish the result unless a newer trigger superseded this one

Superseded requests are not aborted, their results are just not displayed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from calendar_sync.auth.tokens import TokenStore
from calendar_sync.calendar.fetcher import EventFetcher, fetch_with_refresh
from calendar_sync.errors import FetchError, RefreshError, TransientError
from calendar_sync.models.event import CalendarEvent, DateRange

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30.0
STALE_AFTER_SECONDS = 10.0
MAX_TRANSIENT_RETRIES = 3

SIGN_IN_AGAIN = "Authentication failed. Please sign in again."


class PollState(str, Enum):
    """Poller lifecycle state."""

    IDLE = "idle"
    FETCHING = "fetching"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class PollSnapshot:
    """What the presentation layer should currently show."""

    state: PollState
    events: tuple[CalendarEvent, ...] = ()
    date_range: DateRange | None = None
    fetched_at: float | None = None
    error: str | None = None
    authenticated: bool = True


class Timer(ABC):
    """Clock and sleep source for the poller."""

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for the given number of seconds."""


class AsyncioTimer(Timer):
    """Real time, backed by the running event loop."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass(frozen=True)
class _CacheEntry:
    events: tuple[CalendarEvent, ...]
    fetched_at: float


Listener = Callable[[PollSnapshot], None]


class Poller:
    """Re-fetches events on an interval and on explicit triggers.

    Example:
        ```python
        poller = Poller(fetcher, tokens)
        poller.subscribe(lambda snapshot: print(render_snapshot(snapshot)))

        task = asyncio.create_task(poller.run())
        poller.set_date_range(DateRange.today())  # re-triggers immediately
        ...
        poller.stop()
        await task
        ```
    """

    def __init__(
        self,
        fetcher: EventFetcher,
        tokens: TokenStore,
        timer: Timer | None = None,
        interval_seconds: float = POLL_INTERVAL_SECONDS,
        stale_after_seconds: float = STALE_AFTER_SECONDS,
        max_transient_retries: int = MAX_TRANSIENT_RETRIES,
        backoff_min_seconds: float = 1.0,
        backoff_max_seconds: float = 10.0,
    ):
        """Initialize the poller.

        Args:
            fetcher: Issues the events requests
            tokens: Session token store
            timer: Time source for staleness, backoff and the interval
            interval_seconds: Delay between automatic polls
            stale_after_seconds: How long a result is served from cache
            max_transient_retries: Retries after a TransientError per cycle
            backoff_min_seconds: First retry delay
            backoff_max_seconds: Upper bound for retry delays
        """
        self._fetcher = fetcher
        self._tokens = tokens
        self._timer = timer or AsyncioTimer()
        self.interval_seconds = interval_seconds
        self.stale_after_seconds = stale_after_seconds
        self.max_transient_retries = max_transient_retries
        self.backoff_min_seconds = backoff_min_seconds
        self.backoff_max_seconds = backoff_max_seconds

        self._date_range: DateRange | None = None
        self._generation = 0
        self._cache: dict[DateRange | None, _CacheEntry] = {}
        self._snapshot = PollSnapshot(state=PollState.IDLE)
        self._listeners: list[Listener] = []

        self._wake = asyncio.Event()
        self._pending_force = False
        self._stopped = False

    @property
    def snapshot(self) -> PollSnapshot:
        return self._snapshot

    @property
    def state(self) -> PollState:
        return self._snapshot.state

    @property
    def date_range(self) -> DateRange | None:
        return self._date_range

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, snapshot: PollSnapshot) -> PollSnapshot:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def is_fresh(self, date_range: DateRange | None = None) -> bool:
        """Check whether the cached result for a date range is still fresh."""
        entry = self._cache.get(date_range)
        if entry is None:
            return False
        return self._timer.now() - entry.fetched_at < self.stale_after_seconds

    def invalidate(self) -> None:
        """Drop all cached results, e.g. after logout."""
        self._cache.clear()

    def trigger(self, force: bool = False) -> None:
        """Ask the run loop to poll now instead of waiting for the interval."""
        self._pending_force = self._pending_force or force
        self._wake.set()

    def set_date_range(self, date_range: DateRange | None) -> None:
        """Change the date filter.

        Any in-flight cycle for the previous filter is superseded.
        """
        if date_range == self._date_range:
            return
        self._date_range = date_range
        self._generation += 1
        self.trigger()

    def refocus(self) -> None:
        """Re-trigger after the viewer regains focus (staleness applies)."""
        self.trigger()

    async def poll(self, force: bool = False) -> PollSnapshot:
        """Run one trigger cycle.

        Args:
            force: Fetch even when the cached result is still fresh

        Returns:
            The snapshot now displayed
        """
        self._generation += 1
        generation = self._generation
        date_range = self._date_range

        if not force and self.is_fresh(date_range):
            entry = self._cache[date_range]
            return self._publish(
                PollSnapshot(
                    state=PollState.SUCCESS,
                    events=entry.events,
                    date_range=date_range,
                    fetched_at=entry.fetched_at,
                )
            )

        if not self._tokens.is_authenticated:
            return self._publish(PollSnapshot(state=PollState.IDLE, authenticated=False))

        self._publish(replace(self._snapshot, state=PollState.FETCHING, error=None))

        try:
            events = await self._fetch(date_range)
        except RefreshError as e:
            logger.warning(f"Session ended, token refresh failed: {e}")
            self.invalidate()
            snapshot = PollSnapshot(
                state=PollState.FAILED,
                date_range=date_range,
                error=SIGN_IN_AGAIN,
                authenticated=False,
            )
        except FetchError as e:
            logger.warning(f"Fetching events failed: {e}")
            snapshot = PollSnapshot(
                state=PollState.FAILED,
                date_range=date_range,
                error=e.message,
            )
        else:
            fetched_at = self._timer.now()
            self._cache[date_range] = _CacheEntry(tuple(events), fetched_at)
            snapshot = PollSnapshot(
                state=PollState.SUCCESS,
                events=tuple(events),
                date_range=date_range,
                fetched_at=fetched_at,
            )

        if generation != self._generation:
            logger.debug("Discarding result of a superseded poll")
            return self._snapshot

        return self._publish(snapshot)

    async def _fetch(self, date_range: DateRange | None) -> list[CalendarEvent]:
        auth_retry_used = False

        async def refresh_once() -> str:
            nonlocal auth_retry_used
            auth_retry_used = True
            return await self._tokens.refresh()

        fetch = partial(self._fetcher.fetch_events, date_range=date_range)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_transient_retries + 1),
            wait=wait_exponential(
                multiplier=self.backoff_min_seconds,
                min=self.backoff_min_seconds,
                max=self.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TransientError),
            sleep=self._timer.sleep,
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                token = await self._tokens.get_valid_token()
                if token is None:
                    raise RefreshError("Not signed in")
                if auth_retry_used:
                    events = await fetch(token)
                else:
                    events = await fetch_with_refresh(fetch, token, refresh_once)

        return events

    async def _wait_for_trigger(self) -> bool:
        if not self._wake.is_set():
            sleeper = asyncio.ensure_future(self._timer.sleep(self.interval_seconds))
            waker = asyncio.ensure_future(self._wake.wait())
            done, pending = await asyncio.wait(
                {sleeper, waker}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            if waker not in done:
                # Interval polls always hit the network
                return True

        self._wake.clear()
        force = self._pending_force
        self._pending_force = False
        return force

    async def run(self) -> None:
        """Poll until `stop()` is called."""
        self._stopped = False
        force = True
        logger.info(f"Polling every {self.interval_seconds:g}s")
        while not self._stopped:
            await self.poll(force=force)
            force = await self._wait_for_trigger()

    def stop(self) -> None:
        """Stop the run loop after the current cycle."""
        self._stopped = True
        self._wake.set()
