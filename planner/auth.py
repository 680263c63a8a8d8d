"""
Session Resolver

Turns inbound request headers into a nullable session. The auth provider owns
the ``auth_sessions`` table; this module only reads it. Resolution never
raises: anything that goes wrong means "anonymous".
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from fastapi import Depends, Request
from starlette.requests import cookie_parser
from sqlalchemy.orm import Session as DbSession

from planner.config import get_settings
from planner.database import SessionLocal, get_db
from planner.models import AuthSession, as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    id: str


@dataclass(frozen=True)
class Session:
    user: SessionUser


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return value


def _token_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    auth_header = _header(headers, "authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    cookie_header = _header(headers, "cookie")
    if cookie_header:
        return cookie_parser(cookie_header).get(get_settings().session_cookie_name) or None
    return None


def resolve_session(headers: Mapping[str, str] | None, db: DbSession | None = None) -> Optional[Session]:
    """Resolve a session from request headers, or None for anonymous callers."""
    if not headers:
        return None
    owns_db = db is None
    try:
        token = _token_from_headers(headers)
        if not token:
            return None
        if owns_db:
            db = SessionLocal()
        row = db.query(AuthSession).filter(AuthSession.token == token).first()
        if not row:
            return None
        expires_at = as_utc(row.expires_at)
        if expires_at and expires_at <= datetime.now(timezone.utc):
            return None
        return Session(user=SessionUser(id=row.user_id))
    except Exception:
        logger.debug("Session resolution failed", exc_info=True)
        return None
    finally:
        if owns_db and db is not None:
            db.close()


def get_session(request: Request, db: DbSession = Depends(get_db)) -> Optional[Session]:
    """FastAPI dependency: the caller's session, or None."""
    return resolve_session(request.headers, db)


def get_user_id(session: Optional[Session] = Depends(get_session)) -> Optional[str]:
    return session.user.id if session else None
