"""Command-line interface for calendar sync."""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import date

from calendar_sync.auth.backend import BackendAuthError
from calendar_sync.calendar.poller import PollSnapshot
from calendar_sync.calendar.render import render_snapshot
from calendar_sync.config import get_settings
from calendar_sync.errors import ConfigError
from calendar_sync.models.event import DateRange, resolve_timezone
from calendar_sync.viewer import Viewer

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    """Date filter flags; without any of them only today is shown."""
    picker = parser.add_mutually_exclusive_group()
    picker.add_argument("--date", type=_parse_date, help="Show a single day (YYYY-MM-DD)")
    picker.add_argument("--today", action="store_true", help="Show today only (default)")
    picker.add_argument("--all", action="store_true", help="Show events on any day")
    parser.add_argument("--start", type=_parse_date, help="First day to show")
    parser.add_argument("--end", type=_parse_date, help="Last day to show")


def _date_range(args: argparse.Namespace) -> DateRange | None:
    if args.today:
        return DateRange.today()
    if args.date:
        return DateRange.single_day(args.date)
    if args.start or args.end:
        return DateRange(start=args.start, end=args.end)
    if args.all:
        return None
    return DateRange.today()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Calendar Sync - View your Google Calendar events"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Run the backend HTTP API")
    subparsers.add_parser("login", help="Print the URL that starts the sign-in flow")

    exchange_parser = subparsers.add_parser(
        "exchange", help="Finish sign-in with the code from the OAuth callback"
    )
    exchange_parser.add_argument(
        "code",
        help="Authorization code, or the full callback URL",
    )

    subparsers.add_parser("logout", help="Forget the stored session")
    subparsers.add_parser("status", help="Show whether a session is stored")

    events_parser = subparsers.add_parser(
        "events", help="Print events once (today unless a filter is given)"
    )
    _add_filter_arguments(events_parser)

    watch_parser = subparsers.add_parser(
        "watch", help="Keep printing events as they change"
    )
    _add_filter_arguments(watch_parser)

    return parser


def _serve() -> int:
    import uvicorn

    from calendar_sync.api import create_app

    settings = get_settings()
    try:
        settings.require_google_credentials()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    uvicorn.run(create_app(), host=settings.host, port=settings.port)
    return 0


async def _events_once(viewer: Viewer, date_range: DateRange | None) -> int:
    viewer.poller.set_date_range(date_range)
    snapshot = await viewer.poller.poll(force=True)
    print(render_snapshot(snapshot, resolve_timezone(viewer.settings.time_zone)))
    return 0 if snapshot.error is None and snapshot.authenticated else 1


async def _watch(viewer: Viewer, date_range: DateRange | None) -> int:
    tz = resolve_timezone(viewer.settings.time_zone)
    last: list[str] = []

    def show(snapshot: PollSnapshot) -> None:
        text = render_snapshot(snapshot, tz)
        if not last or last[-1] != text:
            last.append(text)
            print(text, flush=True)
            print("-" * 40, flush=True)

    viewer.poller.subscribe(show)
    viewer.poller.set_date_range(date_range)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, viewer.poller.stop)
        except NotImplementedError:
            logger.debug(f"Signal handlers unsupported, {sig.name} not handled")

    await viewer.poller.run()
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        return _serve()

    viewer = Viewer(settings)

    if args.command == "login":
        print(f"Open this URL in your browser to sign in:\n{viewer.login_url}")
        print("Then run `calendar-sync exchange <callback URL>`.")
        return 0

    if args.command == "exchange":
        try:
            asyncio.run(viewer.complete_login(args.code))
        except (BackendAuthError, ValueError) as e:
            print(f"Authentication failed: {e}", file=sys.stderr)
            return 1
        print("Authentication successful.")
        return 0

    if args.command == "logout":
        viewer.logout()
        print("Signed out.")
        return 0

    if args.command == "status":
        print("Signed in." if viewer.is_authenticated else "Not signed in.")
        return 0

    try:
        date_range = _date_range(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.command == "events":
        return asyncio.run(_events_once(viewer, date_range))

    return asyncio.run(_watch(viewer, date_range))


if __name__ == "__main__":
    sys.exit(main())
