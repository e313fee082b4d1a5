"""Root logger setup for the applifix process.

Each line carries the process role and, inside a request, the request id and
the caller's network identity. The middleware in main.py fills the two
context variables below; modules keep using ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path

request_id_var: ContextVar[str] = ContextVar("request_id_var", default="")
client_var: ContextVar[str] = ContextVar("client_var", default="")

_STREAM_HANDLER = "_applifix_stream"
_FILE_HANDLER = "_applifix_file"
_QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "sqlalchemy.engine", "multipart")


class ContextFilter(logging.Filter):
    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role  # type: ignore[attr-defined]
        record.request_id = request_id_var.get("")  # type: ignore[attr-defined]
        record.client = client_var.get("")  # type: ignore[attr-defined]
        return True


class ContextFormatter(logging.Formatter):
    """``<time> [Server][Req 3f2a9c10][Client 203.0.113.7][INFO] <logger>:<line> - <msg>``

    Request and client tags are left out when unset.
    """

    def format(self, record: logging.LogRecord) -> str:
        tags = []
        role = getattr(record, "role", "")
        if role:
            tags.append(f"[{role}]")
        request_id = getattr(record, "request_id", "")
        if request_id:
            tags.append(f"[Req {request_id[:8]}]")
        client = getattr(record, "client", "")
        if client:
            tags.append(f"[Client {client}]")
        tags.append(f"[{record.levelname}]")

        line = (
            f"{self.formatTime(record, self.datefmt)} {''.join(tags)} "
            f"{record.name}:{record.lineno} - {record.getMessage()}"
        )
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line += "\n" + record.exc_text
        if record.stack_info:
            line += "\n" + record.stack_info
        return line


def setup_logging(role: str) -> None:
    """Attach the applifix handlers to the root logger. A second call is a no-op."""
    from applifix.config import settings

    root = logging.getLogger()
    if any(getattr(h, "name", None) == _STREAM_HANDLER for h in root.handlers):
        return

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    ctx_filter = ContextFilter(role)
    formatter = ContextFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = []
    stream = logging.StreamHandler(sys.stderr)
    stream.name = _STREAM_HANDLER
    handlers.append(stream)

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        rotating.name = _FILE_HANDLER
        handlers.append(rotating)

    for handler in handlers:
        handler.addFilter(ctx_filter)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Route uvicorn's own loggers through the root handlers
    if "server" in role.lower():
        for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            uv_logger = logging.getLogger(name)
            uv_logger.handlers.clear()
            uv_logger.propagate = True
