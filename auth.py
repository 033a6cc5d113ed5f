"""Shared-password session authentication."""
import logging
import secrets

from fastapi import Request

logger = logging.getLogger(__name__)

SESSION_COOKIE = "gallery-session"
_SESSION_FLAG = "authenticated"


def is_authenticated(request: Request) -> bool:
    return request.session.get(_SESSION_FLAG) is True


def login(request: Request, password: str, expected: str) -> bool:
    """Mark the session authenticated if password matches."""
    if not secrets.compare_digest((password or "").encode(), expected.encode()):
        logger.warning("Rejected login attempt")
        return False
    request.session[_SESSION_FLAG] = True
    return True


def logout(request: Request) -> None:
    request.session[_SESSION_FLAG] = False
