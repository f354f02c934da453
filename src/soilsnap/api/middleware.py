"""Middleware: login gate for the dashboard endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import HTTPException, Request, status

if TYPE_CHECKING:
    from soilsnap.session import Session


def _get_session_from_request(request: Request) -> Session:
    session: Session = request.app.state.session
    return session


async def require_login(request: Request) -> None:
    """Reject requests until the session has logged in with the demo credentials."""
    if not _get_session_from_request(request).authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Login required",
        )
