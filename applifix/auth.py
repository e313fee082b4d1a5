"""Bearer token authentication dependencies."""

from __future__ import annotations

import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from applifix.database import get_db
from applifix.errors import Unauthenticated
from applifix.models.user import APIKey, UserProfile

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_user(token: str, db: Session) -> UserProfile:
    api_key = db.query(APIKey).filter(APIKey.key == token).first()
    if not api_key:
        raise Unauthenticated("Invalid or missing API key.")
    user = db.query(UserProfile).filter(UserProfile.id == api_key.user_id).first()
    if not user:
        raise Unauthenticated("User not found.")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserProfile:
    """FastAPI dependency: validate Bearer token and return UserProfile."""
    if credentials is None:
        raise Unauthenticated()
    return _resolve_user(credentials.credentials, db)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserProfile | None:
    """FastAPI dependency for guest-accessible routes.

    Returns None when no token was sent or the token does not resolve to a
    user; such callers are throttled as guests.
    """
    if credentials is None:
        return None
    try:
        return _resolve_user(credentials.credentials, db)
    except Unauthenticated as exc:
        logger.info("Unresolved bearer token on guest route, treating as guest: %s", exc.message)
        return None
