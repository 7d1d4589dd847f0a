"""Application configuration.

Configuration is loaded from environment variables using pydantic-settings.
All sensitive values (client secrets, the encryption key) should be provided
via environment variables, not config files.

## Backend Environment Variables

- GOOGLE_CLIENT_ID: Google OAuth client ID
- GOOGLE_CLIENT_SECRET: Google OAuth client secret
- GOOGLE_REDIRECT_URI: OAuth callback URL registered with Google
- WEBHOOK_URL: Address Google should push calendar change notifications to

## Viewer Environment Variables

- BACKEND_URL: Base URL of the backend (default: http://localhost:8000)
- TOKEN_STORE_PATH: Where the session tokens are persisted
- SECRET_KEY: Enables encryption of persisted tokens when set
- TIME_ZONE: IANA zone used for date filtering (default: system local time)

## Example .env file

```
GOOGLE_CLIENT_ID=your-google-client-id.apps.googleusercontent.com
GOOGLE_CLIENT_SECRET=your-google-client-secret
GOOGLE_REDIRECT_URI=http://localhost:8000/oauth2callback
WEBHOOK_URL=https://example.com/api/webhook
```
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from calendar_sync.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Calendar Sync"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="CORS allowed origins",
    )

    # Google OAuth
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_redirect_uri: str | None = None
    google_scopes: list[str] = Field(
        default=[
            "https://www.googleapis.com/auth/calendar.readonly",
            "https://www.googleapis.com/auth/userinfo.profile",
            "https://www.googleapis.com/auth/userinfo.email",
        ],
        description="OAuth scopes requested at login",
    )

    # Google Calendar API
    calendar_id: str = "primary"
    max_results: int = Field(default=50, ge=1, le=2500)
    webhook_url: str | None = None

    # Viewer session
    backend_url: str = "http://localhost:8000"
    secret_key: str | None = Field(
        default=None,
        description="Key used to encrypt persisted tokens (optional)",
    )
    token_store_path: Path = Path.home() / ".calendar-sync" / "session.json"
    time_zone: str | None = None
    request_timeout_seconds: float = 30.0

    # Polling
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    stale_after_seconds: float = Field(default=10.0, ge=0)
    refresh_margin_seconds: int = Field(default=5 * 60, ge=0)
    max_transient_retries: int = Field(default=3, ge=0, le=10)

    @field_validator("backend_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the backend URL so paths can be appended."""
        return v.rstrip("/") if isinstance(v, str) else v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def google_oauth_configured(self) -> bool:
        """Check if Google OAuth is configured."""
        return bool(
            self.google_client_id
            and self.google_client_secret
            and self.google_redirect_uri
        )

    def require_google_credentials(self, include_webhook: bool = False) -> None:
        """Fail fast when upstream credentials are missing.

        Raises:
            ConfigError: Naming every missing environment variable
        """
        required = {
            "GOOGLE_CLIENT_ID": self.google_client_id,
            "GOOGLE_CLIENT_SECRET": self.google_client_secret,
            "GOOGLE_REDIRECT_URI": self.google_redirect_uri,
        }
        if include_webhook:
            required["WEBHOOK_URL"] = self.webhook_url

        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload, clear the cache:
    ```python
    get_settings.cache_clear()
    ```
    """
    return Settings()
