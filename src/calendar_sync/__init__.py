"""Read-only Google Calendar viewer with a small OAuth backend."""

__version__ = "0.1.0"
