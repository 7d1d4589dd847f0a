"""Plain-text presentation of events and poller snapshots."""

from __future__ import annotations

from datetime import date, datetime, tzinfo

from calendar_sync.calendar.poller import PollSnapshot, PollState
from calendar_sync.models.event import UNTITLED_EVENT, CalendarEvent, DateRange

NO_DATE = "No date specified"
EMPTY_STATE = "No events found"
SIGN_IN_PROMPT = "Not signed in. Run `calendar-sync login` to connect your Google Calendar."


def format_when(value: datetime | date | None, tz: tzinfo | None = None) -> str:
    """Format an event boundary.

    Timed values read like "Jan 5, 2024 at 9:30 AM", all-day values like
    "Jan 5, 2024".
    """
    if value is None:
        return NO_DATE

    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        hour = value.hour % 12 or 12
        return (
            f"{value:%b} {value.day}, {value.year} at "
            f"{hour}:{value:%M} {value:%p}"
        )

    return f"{value:%b} {value.day}, {value.year}"


def render_event(event: CalendarEvent, tz: tzinfo | None = None) -> str:
    """Render one event as a small text card."""
    lines = [event.title or UNTITLED_EVENT]

    start = format_when(event.start, tz)
    when = start
    if event.end is not None:
        end = format_when(event.end, tz)
        if end != start:
            when = f"{start} - {end}"
    lines.append(f"  {when}")

    if event.location:
        lines.append(f"  @ {event.location}")
    if event.description:
        lines.extend(f"  {line}" for line in event.description.strip().splitlines())

    return "\n".join(lines)


def describe_range(date_range: DateRange | None) -> str:
    if date_range is None or date_range.is_empty:
        return "all events"
    if date_range.start == date_range.end:
        return format_when(date_range.start)
    start = format_when(date_range.start) if date_range.start else "..."
    end = format_when(date_range.end) if date_range.end else "..."
    return f"{start} - {end}"


def render_snapshot(snapshot: PollSnapshot, tz: tzinfo | None = None) -> str:
    """Render what the viewer should show for a poller snapshot."""
    if not snapshot.authenticated:
        if snapshot.error:
            return f"Error: {snapshot.error}\n{SIGN_IN_PROMPT}"
        return SIGN_IN_PROMPT

    if snapshot.state is PollState.FETCHING and not snapshot.events:
        return "Loading events..."

    if snapshot.state is PollState.FAILED:
        return f"Error: {snapshot.error}"

    if not snapshot.events:
        return EMPTY_STATE

    header = f"Your Google Calendar Events ({describe_range(snapshot.date_range)})"
    cards = [render_event(event, tz) for event in snapshot.events]
    return "\n\n".join([header, *cards])
