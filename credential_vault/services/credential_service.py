"""
Credential connect/disconnect operations shared by the OAuth flow and the
manual API-key route.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import CredentialKind, CredentialStatus
from ..context.tenant_context import tenant_aware
from ..exceptions import ValidationError, not_connected
from ..providers.base import ProviderAdapter
from ..providers.registry import ProviderRegistry
from ..schemas.credential_schemas import CredentialRead, CredentialSummary
from ..utils.encryption_utils import TokenCipher
from ..utils.logger import get_logger
from .credential_mirror import ExternalCredentialMirror
from .credential_store import CredentialStore


class CredentialService:
    """Persists credentials and keeps their workflow engine mirrors in step."""

    def __init__(
        self,
        session: Session,
        cipher: TokenCipher,
        registry: ProviderRegistry,
        mirror: ExternalCredentialMirror,
        config: Optional[AppConfig] = None,
        store: Optional[CredentialStore] = None,
    ):
        self.cipher = cipher
        self.registry = registry
        self.mirror = mirror
        self.config = config or get_config()
        self.store = store or CredentialStore(session)
        self.logger = get_logger()

    def store_connection(
        self,
        tenant_id: str,
        services: Iterable[str],
        kind: CredentialKind,
        encrypted_tokens: bytes,
        nonce: bytes,
        scopes: List[str],
        expires_at: Optional[datetime],
        adapter: ProviderAdapter,
        tokens: Dict[str, Any],
    ) -> List[CredentialRead]:
        """
        Upsert one credential per service, then mirror each one.

        All services share the same ciphertext. Mirror failures never fail
        the connect.
        """
        stored = []
        for service_name in services:
            record = self.store.upsert(
                tenant_id,
                service_name,
                kind,
                encrypted_tokens,
                nonce,
                scopes,
                expires_at,
            )
            stored.append(self._mirror(record, adapter, tokens))
        return stored

    def _mirror(
        self, record: CredentialRead, adapter: ProviderAdapter, tokens: Dict[str, Any]
    ) -> CredentialRead:
        mirror_id = self.mirror.sync(
            record.tenant_id,
            record.service_name,
            adapter.mirror_credential_type(record.service_name),
            adapter.shape_for_mirror(record.service_name, tokens),
            existing_id=record.mirror_credential_id,
        )
        if mirror_id and mirror_id != record.mirror_credential_id:
            self.store.set_mirror_id(record.id, mirror_id)
            record = record.model_copy(update={"mirror_credential_id": mirror_id})
        return record

    @tenant_aware
    def connect_api_key(
        self,
        tenant_id: str,
        service_name: str,
        api_key: Optional[str] = None,
        use_platform_key: bool = False,
    ) -> CredentialSummary:
        """
        Store a pasted or platform-provided API key.

        Raises:
            ValidationError: OAuth service, missing key, or no platform key
            UnsupportedServiceError: Unknown service
        """
        if self.registry.is_oauth(service_name):
            raise ValidationError(
                f"Use oauth-initiate for {service_name}", field="service_name"
            )
        adapter = self.registry.get(service_name)

        if use_platform_key:
            api_key = self.config.providers.platform_keys().get(service_name)
            if not api_key:
                raise ValidationError(
                    f"Platform key not available for {service_name}", field="use_platform_key"
                )
        if not api_key:
            raise ValidationError("api_key is required", field="api_key")

        tokens = {"api_key": api_key}
        ciphertext, nonce = self.cipher.encrypt(tokens)
        (record,) = self.store_connection(
            tenant_id,
            [service_name],
            CredentialKind.API_KEY,
            ciphertext,
            nonce,
            [],
            None,
            adapter,
            tokens,
        )

        self.logger.info(
            "API key connected",
            extra={
                "tenant_id": tenant_id,
                "service_name": service_name,
                "platform_key": use_platform_key,
            },
        )
        return CredentialSummary.model_validate(record.model_dump())

    @tenant_aware
    def disconnect(self, tenant_id: str, service_name: str) -> CredentialSummary:
        """Mark a credential disconnected. Tokens stay in place until a reconnect overwrites them."""
        record = self.store.set_status(tenant_id, service_name, CredentialStatus.DISCONNECTED)
        return CredentialSummary.model_validate(record.model_dump())

    @tenant_aware
    def list_credentials(self, tenant_id: str) -> List[CredentialSummary]:
        return [
            CredentialSummary.model_validate(r.model_dump())
            for r in self.store.list_for_tenant(tenant_id)
        ]

    @tenant_aware
    def reconcile_mirror(self, tenant_id: str, service_name: str) -> Optional[str]:
        """
        Re-push a connected credential to the workflow engine.

        Called before a workflow using the service is deployed, so a mirror
        that failed at connect time gets another chance.

        Returns:
            The engine credential id, or None if the mirror is still missing
        """
        record = self.store.get(tenant_id, service_name)
        if not record.encrypted_tokens or not record.token_nonce:
            raise not_connected(tenant_id, service_name)

        adapter = self.registry.get(service_name)
        tokens = self.cipher.decrypt(record.encrypted_tokens, record.token_nonce)
        return self._mirror(record, adapter, tokens).mirror_credential_id
