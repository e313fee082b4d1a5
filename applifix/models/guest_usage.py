"""Per-guest, per-endpoint usage counter."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from applifix.database import Base


CLIENT_IDENTITY_LENGTH = 64


class GuestUsageCounter(Base):
    """One row per (client identity, endpoint); mutated in place by the guest limiter."""

    __tablename__ = "guest_usage_counters"

    client_identity: Mapped[str] = mapped_column(String(CLIENT_IDENTITY_LENGTH), primary_key=True)
    endpoint: Mapped[str] = mapped_column(String(255), primary_key=True)
    request_count: Mapped[int] = mapped_column(Integer, default=0)
    # Naive UTC; refreshed on every admitted request.
    window_started_at: Mapped[datetime] = mapped_column(DateTime)

    def __repr__(self):
        return (
            f"<GuestUsageCounter {self.client_identity} {self.endpoint} "
            f"count={self.request_count}>"
        )
