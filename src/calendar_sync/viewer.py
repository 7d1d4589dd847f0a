"""Viewer session wiring.

Assembles the token store, backend clients and poller for one signed-in
user, the way the CLI uses them.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlparse

import httpx

from calendar_sync.auth.backend import BackendAuthClient
from calendar_sync.auth.tokens import TokenStore
from calendar_sync.calendar.fetcher import EventFetcher
from calendar_sync.calendar.poller import Poller, Timer
from calendar_sync.config import Settings, get_settings
from calendar_sync.models.token import TokenRecord
from calendar_sync.storage.encryption import TokenCipher
from calendar_sync.storage.kv import FileKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)


def extract_code(value: str) -> str:
    """Accept either a bare authorization code or the full callback URL."""
    value = value.strip()
    if "://" not in value and "?" not in value:
        return value

    codes = parse_qs(urlparse(value).query).get("code")
    if not codes or not codes[0]:
        raise ValueError("No authentication code found in URL")
    return codes[0]


def build_store(settings: Settings) -> KeyValueStore:
    """File store at the configured path, encrypted when SECRET_KEY is set."""
    cipher = TokenCipher(settings.secret_key) if settings.secret_key else None
    return FileKeyValueStore(settings.token_store_path, cipher=cipher)


class Viewer:
    """One user's viewing session."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        timer: Timer | None = None,
    ):
        self.settings = settings or get_settings()
        self.auth = BackendAuthClient(self.settings.backend_url, http_client=http_client)
        self.tokens = TokenStore(
            store or build_store(self.settings),
            refresher=self.auth.refresh,
            refresh_margin_ms=self.settings.refresh_margin_seconds * 1000,
        )
        self.fetcher = EventFetcher(self.settings.backend_url, http_client=http_client)
        self.poller = Poller(
            self.fetcher,
            self.tokens,
            timer=timer,
            interval_seconds=self.settings.poll_interval_seconds,
            stale_after_seconds=self.settings.stale_after_seconds,
            max_transient_retries=self.settings.max_transient_retries,
        )

    @property
    def login_url(self) -> str:
        return self.auth.login_url

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.is_authenticated

    async def complete_login(self, code_or_url: str) -> TokenRecord:
        """Exchange the code from the OAuth callback and start a session."""
        grant = await self.auth.exchange_code(extract_code(code_or_url))
        record = self.tokens.save_grant(grant)
        logger.info("Signed in")
        return record

    def logout(self) -> None:
        """End the session and forget cached events."""
        self.tokens.clear()
        self.poller.invalidate()
        logger.info("Signed out")
