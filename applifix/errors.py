"""Domain errors.

Raised by services and the auth/limiter dependencies; converted once into the
response envelope by the exception handlers registered in ``main.py``.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class: carries the HTTP status, a human-readable message and optional detail."""

    status_code: int = 500
    default_message: str = "request failed"

    def __init__(self, message: str | None = None, errors: Any | None = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class RateLimited(AppError):
    status_code = 429
    default_message = (
        "You have reached the limit of free usage. "
        "Please register to continue using this service."
    )


class StorageUnavailable(AppError):
    status_code = 500
    default_message = "Rate limiter storage unavailable."


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Authentication required."


class Forbidden(AppError):
    status_code = 403
    default_message = "Unauthorized access"


class NotFound(AppError):
    status_code = 404
    default_message = "The requested entity was not found."


class ValidationFailed(AppError):
    status_code = 422
    default_message = "Validation failed"


# ── Completion provider failures ───────────────────────────────────────────


class UpstreamError(AppError):
    """Any failure of the completion provider call. Never retried."""

    status_code = 500
    default_message = "Completion provider failed."


class UpstreamConnectionFailed(UpstreamError):
    status_code = 502

    def __init__(self, cause: str):
        super().__init__(f"Connection error: {cause}")


class UpstreamRejected(UpstreamError):
    """Provider answered with a non-2xx status; the raw body is kept for diagnostics."""

    status_code = 502

    def __init__(self, provider_status: int, body: str):
        self.provider_status = provider_status
        self.body = body
        super().__init__(
            f"OpenAI API error: {body}",
            errors={"provider_status": provider_status, "body": body},
        )


class UpstreamFailed(UpstreamError):
    status_code = 500

    def __init__(self, cause: str):
        super().__init__(f"Unexpected error: {cause}")
