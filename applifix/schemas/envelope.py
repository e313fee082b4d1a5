"""Error envelope shared by every endpoint; successes are built by ``api._helpers.success``."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str = "request failed"
    errors: Any | None = None
