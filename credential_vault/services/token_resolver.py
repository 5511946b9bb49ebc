"""
Read path for stored credentials: return a usable bearer token, refreshing
it first when it is close to expiry.
"""

from datetime import timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import CredentialKind, Timeouts
from ..context.tenant_context import tenant_aware
from ..db.db_base import as_utc, utc_now
from ..exceptions import (
    DecryptionError,
    NoRefreshTokenError,
    NoStoredTokensError,
    StaleCredentialWriteError,
)
from ..providers.base import ProviderAdapter
from ..providers.registry import ProviderRegistry
from ..schemas.credential_schemas import CanonicalTokenSet, CredentialRead, ResolvedToken
from ..utils.encryption_utils import TokenCipher
from ..utils.logger import get_logger
from .credential_store import CredentialStore


def _no_stored_tokens(tenant_id: str, service_name: str) -> NoStoredTokensError:
    return NoStoredTokensError(
        f"{service_name} has no stored tokens", tenant_id=tenant_id, service_name=service_name
    )


class AccessTokenResolver:
    """Resolves a tenant's credential for a service to a currently valid access token."""

    def __init__(
        self,
        session: Session,
        cipher: TokenCipher,
        registry: ProviderRegistry,
        buffer_seconds: Optional[int] = None,
        store: Optional[CredentialStore] = None,
        config: Optional[AppConfig] = None,
    ):
        self.cipher = cipher
        self.registry = registry
        if buffer_seconds is None:
            buffer_seconds = (config or get_config()).oauth.refresh_buffer_seconds
        self.buffer_seconds = buffer_seconds
        self.store = store or CredentialStore(session)
        self.logger = get_logger()

    @tenant_aware
    def resolve(self, tenant_id: str, service_name: str) -> ResolvedToken:
        """
        Return a bearer token for (tenant, service).

        API keys are returned as stored. OAuth tokens are refreshed when they
        expire within the buffer and the provider's tokens expire at all.

        Raises:
            NotConnectedError: No connected credential
            NoStoredTokensError: Credential row has no token material
            DecryptionError: Token material fails authentication
            NoRefreshTokenError: Token is expiring and cannot be refreshed
            RefreshFailedError: Provider refused the refresh
        """
        record = self.store.get(tenant_id, service_name)
        if not record.encrypted_tokens or not record.token_nonce:
            raise _no_stored_tokens(tenant_id, service_name)

        tokens = self.cipher.decrypt(record.encrypted_tokens, record.token_nonce)
        if not tokens:
            raise _no_stored_tokens(tenant_id, service_name)

        if record.credential_type == CredentialKind.API_KEY:
            api_key = tokens.get("api_key")
            if not api_key:
                raise _no_stored_tokens(tenant_id, service_name)
            return ResolvedToken(access_token=api_key, token_type="Bearer")

        try:
            token_set = CanonicalTokenSet.model_validate(tokens)
        except PydanticValidationError as e:
            raise DecryptionError(
                "Stored token set is malformed",
                cause=e,
                tenant_id=tenant_id,
                service_name=service_name,
            ) from e

        adapter = self.registry.get(service_name)
        if not adapter.tokens_expire or not self._needs_refresh(record):
            return ResolvedToken(
                access_token=token_set.access_token, token_type=token_set.token_type
            )

        return self._refresh(record, token_set, adapter)

    def _needs_refresh(self, record: CredentialRead) -> bool:
        if record.token_expires_at is None:
            return True
        threshold = utc_now() + timedelta(seconds=self.buffer_seconds)
        return as_utc(record.token_expires_at) <= threshold

    def _refresh(
        self, record: CredentialRead, token_set: CanonicalTokenSet, adapter: ProviderAdapter
    ) -> ResolvedToken:
        if not token_set.refresh_token:
            raise NoRefreshTokenError(
                f"{record.service_name} token expired and no refresh token is stored",
                tenant_id=record.tenant_id,
                service_name=record.service_name,
            )

        self.logger.info(
            "Refreshing access token",
            extra={"tenant_id": record.tenant_id, "service_name": record.service_name},
        )
        fresh = adapter.refresh_access_token(token_set.refresh_token)

        merged = {**token_set.to_storage(), **fresh.to_storage()}
        if not fresh.refresh_token:
            merged["refresh_token"] = token_set.refresh_token

        lifetime = fresh.expires_in or Timeouts.DEFAULT_TOKEN_LIFETIME
        expires_at = utc_now() + timedelta(seconds=lifetime)
        ciphertext, nonce = self.cipher.encrypt(merged)

        try:
            self.store.update_tokens(
                record.id, ciphertext, nonce, expires_at, expected_version=record.version
            )
        except StaleCredentialWriteError:
            # A concurrent refresh or reconnect already wrote newer tokens
            self.logger.warning(
                "Refreshed token not persisted, credential changed concurrently",
                extra={
                    "tenant_id": record.tenant_id,
                    "service_name": record.service_name,
                    "expected_version": record.version,
                },
            )
        else:
            self.logger.info(
                "Access token refreshed",
                extra={
                    "tenant_id": record.tenant_id,
                    "service_name": record.service_name,
                    "expires_at": expires_at.isoformat(),
                },
            )

        return ResolvedToken(
            access_token=fresh.access_token, token_type=merged.get("token_type") or "Bearer"
        )
