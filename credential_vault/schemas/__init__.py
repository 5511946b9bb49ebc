"""Pydantic schemas for the credential vault."""

from .credential_schemas import (
    CanonicalTokenSet,
    CredentialRead,
    CredentialSummary,
    ManualConnectRequest,
    OAuthExchangeRequest,
    OAuthExchangeResult,
    OAuthInitiateRequest,
    OAuthInitiateResult,
    OAuthStateRead,
    ResolvedToken,
    ServiceRequest,
)

__all__ = [
    "CanonicalTokenSet",
    "CredentialRead",
    "CredentialSummary",
    "ManualConnectRequest",
    "OAuthExchangeRequest",
    "OAuthExchangeResult",
    "OAuthInitiateRequest",
    "OAuthInitiateResult",
    "OAuthStateRead",
    "ResolvedToken",
    "ServiceRequest",
]
