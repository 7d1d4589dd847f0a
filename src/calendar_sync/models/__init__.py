"""Domain models for calendar sync."""

from calendar_sync.models.event import (
    CalendarEvent,
    DateRange,
    resolve_timezone,
)
from calendar_sync.models.token import (
    TOKEN_KEYS,
    TokenGrant,
    TokenRecord,
)

__all__ = [
    # Event
    "CalendarEvent",
    "DateRange",
    "resolve_timezone",
    # Token
    "TOKEN_KEYS",
    "TokenGrant",
    "TokenRecord",
]
