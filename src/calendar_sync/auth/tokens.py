"""Session token lifecycle.

The viewer keeps one TokenRecord (access token, refresh token, expiry) in a
persisted key-value store. An access token is treated as expired a few
minutes before Google would reject it so it gets refreshed proactively.

## Lifecycle

1. `save()` after a successful code exchange
2. `get_valid_token()` before every events request, refreshing if needed
3. `refresh()` replaces the access token and expiry in one write
4. `clear()` on logout or when a refresh fails

A failed refresh ends the session: all persisted fields are removed and the
user has to sign in again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from calendar_sync.errors import RefreshError
from calendar_sync.models.token import TOKEN_KEYS, TokenGrant, TokenRecord
from calendar_sync.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

REFRESH_MARGIN_MS = 5 * 60 * 1000

Clock = Callable[[], int]
Refresher = Callable[[str], Awaitable[TokenGrant]]


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class TokenStore:
    """Persisted access/refresh token pair.

    Example:
        ```python
        auth = BackendAuthClient()
        tokens = TokenStore(FileKeyValueStore(path), refresher=auth.refresh)

        tokens.save(grant.access_token, grant.refresh_token, grant.expires_in)
        access_token = await tokens.get_valid_token()
        ```
    """

    def __init__(
        self,
        store: KeyValueStore,
        refresher: Refresher,
        clock: Clock = epoch_ms,
        refresh_margin_ms: int = REFRESH_MARGIN_MS,
    ):
        """Initialize the token store.

        Args:
            store: Where the three token fields are persisted
            refresher: Exchanges a refresh token for a new TokenGrant
            clock: Returns the current time in epoch milliseconds
            refresh_margin_ms: How long before expiry a token counts as expired
        """
        self._store = store
        self._refresher = refresher
        self._clock = clock
        self.refresh_margin_ms = refresh_margin_ms
        self._refresh_task: asyncio.Task[str] | None = None

    def is_expired(self, expires_at_ms: int | None) -> bool:
        """Check an expiry timestamp against the refresh margin."""
        if expires_at_ms is None:
            return True
        return self._clock() >= expires_at_ms - self.refresh_margin_ms

    def load(self) -> TokenRecord | None:
        """Read the stored record, or None if there is no complete session."""
        try:
            entries = self._store.get_many(TOKEN_KEYS)
        except ValueError as e:
            logger.warning(f"Stored session is unreadable, ignoring it: {e}")
            return None
        return TokenRecord.from_entries(entries)

    @property
    def is_authenticated(self) -> bool:
        return self.load() is not None

    def save(
        self,
        access_token: str,
        refresh_token: str,
        expires_in_seconds: int,
    ) -> TokenRecord:
        """Persist a new token record.

        All three fields are written in a single store operation.
        """
        record = TokenRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at_ms=self._clock() + int(expires_in_seconds) * 1000,
        )
        self._store.set_many(record.to_entries())
        logger.debug(f"Saved session tokens expiring at {record.expires_at_ms}")
        return record

    def save_grant(self, grant: TokenGrant) -> TokenRecord:
        """Persist a grant from a code exchange."""
        if not grant.refresh_token:
            raise ValueError("A refresh token is required to start a session")
        return self.save(grant.access_token, grant.refresh_token, grant.expires_in)

    def clear(self) -> None:
        """Remove all stored token fields."""
        self._store.delete_many(TOKEN_KEYS)

    async def get_valid_token(self) -> str | None:
        """Return a usable access token, refreshing it first if needed.

        Returns:
            The access token, or None when there is no session

        Raises:
            RefreshError: If the token was expired and could not be refreshed
        """
        record = self.load()
        if record is None:
            return None

        if not self.is_expired(record.expires_at_ms):
            return record.access_token

        logger.info("Access token expired or about to expire, refreshing")
        return await self.refresh()

    async def refresh(self) -> str:
        """Exchange the refresh token for a new access token.

        Concurrent callers share a single in-flight refresh.

        Returns:
            The new access token

        Raises:
            RefreshError: If the refresh fails (the session is cleared)
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._refresh())
            self._refresh_task = task

        try:
            return await task
        finally:
            if self._refresh_task is task:
                self._refresh_task = None

    async def _refresh(self) -> str:
        record = self.load()
        if record is None:
            self.clear()
            raise RefreshError("No refresh token available")

        try:
            grant = await self._refresher(record.refresh_token)
        except RefreshError as e:
            logger.error(f"Token refresh failed: {e}")
            self.clear()
            raise
        except Exception as e:
            logger.error(f"Token refresh failed: {e}")
            self.clear()
            raise RefreshError(f"Token refresh failed: {e}") from e

        updated = self.save(
            grant.access_token,
            grant.refresh_token or record.refresh_token,
            grant.expires_in,
        )
        logger.info("Access token refreshed")
        return updated.access_token
