"""
Pydantic schemas for credentials, tokens, and OAuth flow payloads.

Defines the canonical token set every provider adapter produces, the
read-side views of stored rows, and the request/response bodies of the
HTTP surface.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..constants import CredentialKind, CredentialStatus


class CanonicalTokenSet(BaseModel):
    """
    Normalized provider token response.

    Provider-specific metadata (bot ids, workspace ids, ...) rides along as
    extra fields and is preserved through encryption.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., min_length=1, description="Bearer access token")
    refresh_token: Optional[str] = Field(None, description="Refresh token, if issued")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: Optional[int] = Field(None, description="Lifetime in seconds from obtained_at")
    obtained_at: Optional[str] = Field(None, description="ISO timestamp the set was issued")

    @field_validator("token_type", mode="before")
    @classmethod
    def default_token_type(cls, v):
        return v or "Bearer"

    @property
    def provider_metadata(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})

    def to_storage(self) -> Dict[str, Any]:
        """Plain dict for encryption, dropping unset optional fields."""
        return self.model_dump(exclude_none=True)


class ResolvedToken(BaseModel):
    """Result of the read path: a currently usable bearer token."""

    access_token: str
    token_type: str = "Bearer"


class CredentialRead(BaseModel):
    """Full stored row, ciphertext included. Internal use only."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    service_name: str
    credential_type: CredentialKind
    encrypted_tokens: Optional[bytes] = None
    token_nonce: Optional[bytes] = None
    token_expires_at: Optional[datetime] = None
    scopes: List[str] = Field(default_factory=list)
    mirror_credential_id: Optional[str] = None
    status: CredentialStatus
    version: int
    created_at: datetime
    updated_at: datetime


class CredentialSummary(BaseModel):
    """Outward view of a credential. Never carries secret material."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    service_name: str
    status: CredentialStatus
    credential_type: CredentialKind
    scopes: List[str] = Field(default_factory=list)
    token_expires_at: Optional[datetime] = None
    mirror_credential_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OAuthStateRead(BaseModel):
    """Snapshot of a consumed state row."""

    model_config = ConfigDict(from_attributes=True)

    state_token: str
    tenant_id: str
    user_id: str
    service_name: str
    redirect_uri: str
    scopes: List[str] = Field(default_factory=list)
    created_at: datetime
    expires_at: datetime


class OAuthInitiateRequest(BaseModel):
    service_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("service_name", "serviceName"),
    )


class OAuthInitiateResult(BaseModel):
    auth_url: str
    callback_url: str


class OAuthExchangeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)


class OAuthExchangeResult(BaseModel):
    success: bool = True
    services: List[str]
    service_name: str


class ManualConnectRequest(BaseModel):
    """API-key or platform-key connect request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    service_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("service_name", "serviceName"),
    )
    api_key: Optional[str] = Field(None, validation_alias=AliasChoices("api_key", "apiKey"))
    use_platform_key: bool = Field(
        default=False, validation_alias=AliasChoices("use_platform_key", "usePlatformKey")
    )


class ServiceRequest(BaseModel):
    service_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("service_name", "serviceName"),
    )
