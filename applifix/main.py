"""FastAPI application entry point."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from applifix import __version__
from applifix.api import api_router
from applifix.api._helpers import client_identity, close_completion_client
from applifix.config import settings
from applifix.database import Base, SessionLocal, engine
from applifix.errors import AppError
from applifix.logging_config import client_var, request_id_var
from applifix.schemas.envelope import ErrorEnvelope

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from applifix.logging_config import setup_logging
    setup_logging("Server")

    # register all models with Base
    import applifix.models  # noqa: F401

    # Startup: create tables if they don't exist (dev convenience; use alembic in prod)
    Base.metadata.create_all(bind=engine)

    if settings.GUEST_COUNTER_TTL_SECONDS > 0:
        from applifix.services.cleanup import sweep_guest_counters
        try:
            with SessionLocal() as session:
                sweep_guest_counters(
                    session,
                    ttl=timedelta(seconds=settings.GUEST_COUNTER_TTL_SECONDS),
                    window=timedelta(seconds=settings.GUEST_WINDOW_SECONDS),
                )
        except Exception:
            logger.exception("Failed to sweep guest counters on startup")

    yield

    close_completion_client()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Stamps a request id and the client identity onto every log line of the request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request_id_var.set(request_id)
        client_var.set(client_identity(request))

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def _error_response(status_code: int, message: str, errors=None) -> JSONResponse:
    body = ErrorEnvelope(message=message, errors=jsonable_encoder(errors))
    return JSONResponse(status_code=status_code, content=body.model_dump())


app = FastAPI(title="Applifix API", version=__version__, lifespan=lifespan)

app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.CORS_ALLOW_ALL_ORIGINS else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    else:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation failed on %s", request.url.path)
    return _error_response(422, "Validation failed", exc.errors())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(500, f"Internal server error: {type(exc).__name__}")


@app.get("/health", tags=["health"])
def health():
    return {"status": "healthy"}


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("applifix.main:app", host="0.0.0.0", port=8000, reload=True, log_config=None)
