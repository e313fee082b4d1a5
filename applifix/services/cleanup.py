"""Optional cleanup job: delete guest usage counters that have gone stale.

Disabled unless ``GUEST_COUNTER_TTL_SECONDS`` is set. The TTL must be at least
the limiter window, so a swept row is one the limiter would have reset anyway
and no admission decision changes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session

from applifix.models.guest_usage import GuestUsageCounter
from applifix.services.rate_limiter import utcnow

logger = logging.getLogger(__name__)


def sweep_guest_counters(
    db: Session,
    ttl: timedelta,
    window: timedelta,
    now: datetime | None = None,
) -> int:
    """Delete counters whose window started more than *ttl* ago.

    Returns the number of rows deleted.
    """
    if ttl < window:
        raise ValueError(f"counter TTL ({ttl}) must not be shorter than the window ({window})")

    cutoff = (now or utcnow()) - ttl
    result = db.execute(
        delete(GuestUsageCounter)
        .where(GuestUsageCounter.window_started_at <= cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    removed = result.rowcount or 0
    if removed:
        logger.info("Swept %d stale guest counters (older than %s)", removed, cutoff)
    return removed
