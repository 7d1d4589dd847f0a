"""Event and date filter models."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from typing import Any, Self
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled Event"

# Last representable millisecond of a day
END_OF_DAY = time(23, 59, 59, 999_000)


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Resolve an IANA zone name; None means the system's local time."""
    if not name:
        return None
    return ZoneInfo(name)


def _localize(value: datetime, tz: tzinfo | None) -> datetime:
    if tz is None:
        # Naive datetimes are interpreted as system local time
        return value.astimezone()
    return value.replace(tzinfo=tz)


class DateRange(BaseModel):
    """Inclusive calendar date filter.

    Either bound may be omitted. The whole filter being absent (None at the
    call sites) means "no filter".
    """

    model_config = ConfigDict(frozen=True)

    start: date | None = Field(default=None, description="First day included")
    end: date | None = Field(default=None, description="Last day included")

    @model_validator(mode="after")
    def check_order(self) -> Self:
        if self.start and self.end and self.start > self.end:
            raise ValueError(
                f"Start date {self.start.isoformat()} is after end date "
                f"{self.end.isoformat()}"
            )
        return self

    @classmethod
    def single_day(cls, day: date) -> Self:
        """Filter covering exactly one day."""
        return cls(start=day, end=day)

    @classmethod
    def today(cls) -> Self:
        """Filter covering the current local day."""
        return cls.single_day(date.today())

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None

    def to_time_bounds(
        self, tz: tzinfo | None = None
    ) -> tuple[datetime | None, datetime | None]:
        """Translate to inclusive day boundaries.

        Args:
            tz: Zone the days are interpreted in (None for system local)

        Returns:
            (start of first day at 00:00:00.000, end of last day at 23:59:59.999)
        """
        time_min = None
        time_max = None
        if self.start is not None:
            time_min = _localize(datetime.combine(self.start, time.min), tz)
        if self.end is not None:
            time_max = _localize(datetime.combine(self.end, END_OF_DAY), tz)
        return time_min, time_max

    def to_query_params(self) -> dict[str, str]:
        """Query parameters understood by the backend events route."""
        params: dict[str, str] = {}
        if self.start is not None:
            params["startDate"] = self.start.isoformat()
        if self.end is not None:
            params["endDate"] = self.end.isoformat()
        return params


def _parse_when(data: dict[str, Any] | None) -> datetime | date | None:
    if not data:
        return None
    try:
        if data.get("dateTime"):
            return datetime.fromisoformat(data["dateTime"].replace("Z", "+00:00"))
        if data.get("date"):
            return date.fromisoformat(data["date"])
    except (AttributeError, TypeError, ValueError):
        # Rendered as "No date specified"
        logger.warning(f"Ignoring unparsable event time: {data}")
    return None


@dataclass(frozen=True)
class CalendarEvent:
    """A calendar event as returned by the upstream API.

    Timed events carry datetimes, all-day events carry dates.
    """

    id: str
    title: str
    start: datetime | date | None = None
    end: datetime | date | None = None
    location: str | None = None
    description: str | None = None
    html_link: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_all_day(self) -> bool:
        return isinstance(self.start, date) and not isinstance(self.start, datetime)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CalendarEvent:
        """Create from a Google Calendar API event resource."""
        return cls(
            id=data["id"],
            title=data.get("summary") or UNTITLED_EVENT,
            start=_parse_when(data.get("start")),
            end=_parse_when(data.get("end")),
            location=data.get("location") or None,
            description=data.get("description") or None,
            html_link=data.get("htmlLink"),
            raw_data=data,
        )
