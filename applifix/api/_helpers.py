"""Shared helpers and dependencies for API routers."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Query, Session

from applifix.auth import get_optional_user
from applifix.config import settings
from applifix.database import get_db
from applifix.errors import RateLimited
from applifix.models.guest_usage import CLIENT_IDENTITY_LENGTH
from applifix.models.user import UserProfile
from applifix.services.completion import CompletionClient
from applifix.services.rate_limiter import Decision, GuestRateLimiter

logger = logging.getLogger(__name__)


def success(data: Any = None, message: str = "request success") -> dict:
    """Build the success envelope."""
    return {"success": True, "message": message, "data": data}


def paginate(query: Query, page: int, per_page: int, serialize) -> dict:
    """Slice *query* into a 1-based page and serialize each row."""
    page = max(page, 1)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [serialize(r) for r in rows],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


def client_identity(request: Request) -> str:
    """Network identity of the caller, used as the guest counter key.

    Cut to the counter key width; a forwarded header is client-controlled.
    """
    if settings.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop[:CLIENT_IDENTITY_LENGTH]
    host = request.client.host if request.client else "unknown"
    return host[:CLIENT_IDENTITY_LENGTH]


def enforce_guest_limit(
    request: Request,
    actor: UserProfile | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> UserProfile | None:
    """Route dependency: count a guest request, or stop it with 429 before the handler runs."""
    ident = client_identity(request)
    decision = GuestRateLimiter(db).check(
        actor,
        ident,
        request.url.path,
        limit=settings.GUEST_REQUEST_LIMIT,
        window=timedelta(seconds=settings.GUEST_WINDOW_SECONDS),
    )
    if decision is Decision.REJECT:
        logger.warning("Guest %s exceeded quota on %s", ident, request.url.path)
        raise RateLimited()
    return actor


_completion_client: CompletionClient | None = None


def get_completion_client() -> CompletionClient:
    """Process-wide completion client, created on first use."""
    global _completion_client
    if _completion_client is None:
        _completion_client = CompletionClient(
            base_url=settings.OPENAI_BASE_URL,
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.COMPLETION_TIMEOUT_SECONDS,
        )
    return _completion_client


def close_completion_client() -> None:
    global _completion_client
    if _completion_client is not None:
        _completion_client.close()
        _completion_client = None
