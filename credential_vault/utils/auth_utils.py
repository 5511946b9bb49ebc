"""
Bearer token authentication for the HTTP surface.

Tokens are ``base64url(payload).base64url(hmac_sha256(payload))`` where the
payload is JSON ``{"sub", "tenant_id", "exp"}``, signed with AUTH_TOKEN_SECRET.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from ..config import get_config
from ..constants import Timeouts
from ..exceptions import AuthError, ConfigError


class AuthContext(BaseModel):
    """Identity of an authenticated caller."""

    user_id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _sign(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest)


def issue_access_token(
    user_id: str,
    tenant_id: str,
    secret: str,
    expires_in: int = Timeouts.AUTH_TOKEN_LIFETIME,
) -> str:
    """Create a signed bearer token for a user of a tenant."""
    claims = {"sub": user_id, "tenant_id": tenant_id, "exp": int(time.time()) + expires_in}
    payload = _b64encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    return f"{payload}.{_sign(payload, secret)}"


def verify_access_token(token: str, secret: str) -> AuthContext:
    """
    Check a bearer token's signature and expiry.

    Raises:
        AuthError: If the token is malformed, forged or expired
    """
    if not token.isascii():
        raise AuthError("Malformed access token")
    try:
        payload, signature = token.split(".")
    except ValueError:
        raise AuthError("Malformed access token")

    if not hmac.compare_digest(signature, _sign(payload, secret)):
        raise AuthError("Invalid access token")

    try:
        claims: Dict[str, Any] = json.loads(_b64decode(payload))
    except (ValueError, UnicodeDecodeError) as e:
        raise AuthError("Malformed access token", cause=e) from e

    if not isinstance(claims, dict):
        raise AuthError("Malformed access token")

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or exp < time.time():
        raise AuthError("Access token expired")

    if not claims.get("sub") or not claims.get("tenant_id"):
        raise AuthError("Access token has no tenant")

    return AuthContext(user_id=str(claims["sub"]), tenant_id=str(claims["tenant_id"]))


def authenticate_request(headers: Mapping[str, str], secret: Optional[str] = None) -> AuthContext:
    """
    Authenticate a request from its Authorization header.

    Raises:
        AuthError: Missing or invalid bearer token
        ConfigError: AUTH_TOKEN_SECRET not configured
    """
    secret = secret or get_config().security.auth_token_secret
    if not secret:
        raise ConfigError("AUTH_TOKEN_SECRET not configured")

    header = headers.get("Authorization") or headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Missing authorization header")

    return verify_access_token(token.strip(), secret)
