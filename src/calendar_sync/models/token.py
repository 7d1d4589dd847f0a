"""Session token model."""

from __future__ import annotations

from dataclasses import dataclass

# Persisted key names, one entry per field
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
EXPIRES_AT_KEY = "expiresAt"

TOKEN_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_AT_KEY)


@dataclass(frozen=True)
class TokenGrant:
    """Tokens handed out by a code exchange or refresh."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None


@dataclass(frozen=True)
class TokenRecord:
    """Access/refresh token pair with the access token's expiry."""

    access_token: str
    refresh_token: str
    expires_at_ms: int

    def to_entries(self) -> dict[str, str]:
        """Serialize to the persisted key-value layout."""
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
            EXPIRES_AT_KEY: str(self.expires_at_ms),
        }

    @classmethod
    def from_entries(cls, entries: dict[str, str | None]) -> TokenRecord | None:
        """Rebuild from persisted entries.

        Returns None when any field is missing or the expiry is unparsable.
        """
        access_token = entries.get(ACCESS_TOKEN_KEY)
        refresh_token = entries.get(REFRESH_TOKEN_KEY)
        expires_at = entries.get(EXPIRES_AT_KEY)

        if not access_token or not refresh_token or not expires_at:
            return None

        try:
            expires_at_ms = int(expires_at)
        except ValueError:
            return None

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at_ms=expires_at_ms,
        )
