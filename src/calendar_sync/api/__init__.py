"""FastAPI application and routes.

This module provides the HTTP backend the calendar viewer talks to.

## API Structure

- /api/auth - OAuth login redirect, code exchange and token refresh
- /api/events - Calendar events, optionally filtered by date
- /api/watch - Push channel registration
- /api/webhook - Push notification receiver

## Authentication

The backend is stateless. Event and watch requests carry the viewer's Google
access token in the Authorization (Bearer) or x-access-token header.
"""

from calendar_sync.api.app import create_app

__all__ = ["create_app"]
