"""
OAuth state model - one row per in-flight authorization attempt.

Rows are single-use: the callback deletes the row it reads.
"""

from sqlalchemy import Column, DateTime, Index, String, Text

from .db_base import JSON, UUIDMixin, utc_now
from .db_config import Base


class OAuthStateRecord(Base, UUIDMixin):
    """Anti-replay state token - just data, no logic."""

    __tablename__ = "oauth_states"

    state_token = Column(String(128), nullable=False, unique=True)
    tenant_id = Column(String(100), nullable=False)
    user_id = Column(String(100), nullable=False)
    service_name = Column(String(50), nullable=False)
    redirect_uri = Column(Text, nullable=False)
    scopes = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    # Enforced by the application, not the database
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_oauth_states_expires_at", "expires_at"),)
