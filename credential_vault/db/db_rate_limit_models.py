"""
Rate limit counter model - one row per tenant per fixed window.
"""

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String

from .db_base import UUIDMixin, utc_now
from .db_config import Base


class RateLimitWindow(Base, UUIDMixin):
    """Shared fixed-window request counter - just data, no logic."""

    __tablename__ = "rate_limit_windows"

    tenant_id = Column(String(100), nullable=False)
    # Seconds since epoch divided by the window length
    window_index = Column(BigInteger, nullable=False)
    request_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_rate_limit_tenant_window", "tenant_id", "window_index", unique=True),
    )
