"""Response envelopes shared by all routes.

Success: {"data": ..., "message": ...}
Error:   {"error": ..., "message": ...}
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


def success_response(
    data: Any,
    message: str | None = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"data": data, "message": message},
    )


def error_response(
    error: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    message: str | None = None,
) -> JSONResponse:
    """Build an error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message or error},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPExceptions in the error envelope."""
    response = error_response(str(exc.detail), status_code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def token_from_headers(request: Request) -> str | None:
    """Extract the access token from Authorization or x-access-token."""
    header = request.headers.get("authorization") or request.headers.get(
        "x-access-token"
    )
    if not header:
        return None

    scheme, _, value = header.partition(" ")
    if value and scheme.lower() == "bearer":
        return value.strip() or None
    return header.strip() or None
