"""
Credential model - one row per (tenant, service) connection.

Just the data structure - no business logic or class methods.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String

from ..constants import CredentialStatus
from .db_base import JSON, HexBinary, TimestampMixin, UUIDMixin
from .db_config import Base


class CredentialRecord(Base, UUIDMixin, TimestampMixin):
    """Encrypted connection record - just data, no logic."""

    __tablename__ = "credentials"

    tenant_id = Column(String(100), nullable=False, index=True)
    service_name = Column(String(50), nullable=False)
    credential_type = Column(String(20), nullable=False)

    # AES-GCM ciphertext of the JSON token map and its nonce
    encrypted_tokens = Column(HexBinary, nullable=True)
    token_nonce = Column(HexBinary, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    scopes = Column(JSON, nullable=False, default=list)
    mirror_credential_id = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=CredentialStatus.CONNECTED.value)

    # Bumped on every token write; compare-and-swap guard for refreshes
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_credentials_tenant_service", "tenant_id", "service_name", unique=True),
    )
