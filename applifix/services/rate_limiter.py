"""GuestRateLimiter: per (client identity, endpoint) quota for unauthenticated callers."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from applifix.errors import StorageUnavailable
from applifix.models.guest_usage import GuestUsageCounter

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_WINDOW = timedelta(hours=1)

# Each failed compare-and-swap means another request for the same key won, so
# this only needs to exceed the number of requests that can race on one key.
_MAX_ATTEMPTS = 50


class Decision(str, enum.Enum):
    ADMIT = "admit"
    REJECT = "reject"


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in the counter table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class GuestRateLimiter:
    """
    Admits or rejects guest requests against a fixed quota per window.

    The read of a counter, the decision and the write are one atomic unit per
    key: the row is locked with ``SELECT ... FOR UPDATE`` where the engine
    supports it, and the write is a compare-and-swap ``UPDATE`` guarded on the
    values that were read. A lost swap rolls back and re-reads, so engines
    without row locks (SQLite) get the same guarantee. Requests for different
    keys never touch the same row.

    The session is committed or rolled back by every call.
    """

    def __init__(self, db: Session):
        self.db = db

    def check(
        self,
        actor,
        client_identity: str,
        endpoint: str,
        now: datetime | None = None,
        limit: int = DEFAULT_LIMIT,
        window: timedelta = DEFAULT_WINDOW,
    ) -> Decision:
        """Decide whether this request may proceed.

        *actor* is the authenticated user or ``None`` for a guest; authenticated
        callers are always admitted and their requests are never counted.

        Raises StorageUnavailable when the counter cannot be read or written.
        """
        if actor is not None:
            return Decision.ADMIT
        if limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit}")
        if window <= timedelta(0):
            raise ValueError("window must be positive")

        now = _as_naive_utc(now or utcnow())

        try:
            for attempt in range(1, _MAX_ATTEMPTS + 1):
                decision = self._attempt(client_identity, endpoint, now, limit, window)
                if decision is not None:
                    logger.debug(
                        "Guest %s on %s: %s (attempt %d)",
                        client_identity, endpoint, decision.value, attempt,
                    )
                    return decision
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Guest counter unavailable for %s on %s: %s", client_identity, endpoint, exc)
            raise StorageUnavailable() from exc

        logger.error(
            "Gave up updating guest counter for %s on %s after %d attempts",
            client_identity, endpoint, _MAX_ATTEMPTS,
        )
        raise StorageUnavailable("Rate limiter storage unavailable: counter update kept conflicting.")

    # ── internals ──────────────────────────────────────────────────────────

    def _attempt(
        self,
        client_identity: str,
        endpoint: str,
        now: datetime,
        limit: int,
        window: timedelta,
    ) -> Decision | None:
        """One read-decide-write pass. Returns None when the swap lost a race."""
        state = self._locked_state(client_identity, endpoint)
        if state is None:
            self._create(client_identity, endpoint, now)
            state = self._locked_state(client_identity, endpoint)
            if state is None:
                self.db.rollback()
                return None

        count, started_at = state
        if now - started_at >= window:
            new_count = 1
        elif count >= limit:
            self.db.rollback()
            return Decision.REJECT
        else:
            new_count = count + 1

        result = self.db.execute(
            update(GuestUsageCounter)
            .where(
                GuestUsageCounter.client_identity == client_identity,
                GuestUsageCounter.endpoint == endpoint,
                GuestUsageCounter.request_count == count,
                GuestUsageCounter.window_started_at == started_at,
            )
            .values(request_count=new_count, window_started_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return None

        self.db.commit()
        return Decision.ADMIT

    def _locked_state(self, client_identity: str, endpoint: str) -> tuple[int, datetime] | None:
        row = self.db.execute(
            select(GuestUsageCounter.request_count, GuestUsageCounter.window_started_at)
            .where(
                GuestUsageCounter.client_identity == client_identity,
                GuestUsageCounter.endpoint == endpoint,
            )
            .with_for_update()
        ).one_or_none()
        if row is None:
            return None
        return row.request_count, row.window_started_at

    def _create(self, client_identity: str, endpoint: str, now: datetime) -> None:
        """Insert an empty counter; losing the insert race to another request is fine."""
        try:
            self.db.execute(
                insert(GuestUsageCounter).values(
                    client_identity=client_identity,
                    endpoint=endpoint,
                    request_count=0,
                    window_started_at=now,
                )
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.debug("Counter for %s on %s created concurrently", client_identity, endpoint)
