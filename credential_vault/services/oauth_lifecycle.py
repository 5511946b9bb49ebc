"""
OAuth authorization-code lifecycle.

initiate -> provider consent -> callback/exchange -> persist -> mirror.
Each step is logged as a flow state so a failed attempt can be traced from
the logs alone.
"""

from datetime import timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import CredentialKind
from ..context.tenant_context import tenant_aware
from ..db.db_base import utc_now
from ..exceptions import (
    ExchangeError,
    StateInvalidOrExpiredError,
    TenantMismatchError,
    UnsupportedServiceError,
)
from ..providers.registry import ProviderRegistry
from ..schemas.credential_schemas import OAuthExchangeResult, OAuthInitiateResult
from ..utils.encryption_utils import TokenCipher
from ..utils.logger import get_logger
from .credential_mirror import ExternalCredentialMirror
from .credential_service import CredentialService
from .state_token_store import StateTokenStore


class OAuthFlowState(str, Enum):
    """Steps and terminal failures of one authorization attempt."""

    INITIATED = "initiated"
    CALLBACK_RECEIVED = "callback_received"
    STATE_VALIDATED = "state_validated"
    CODE_EXCHANGED = "code_exchanged"
    TOKENS_PERSISTED = "tokens_persisted"
    MIRRORED = "mirrored"
    DONE = "done"

    INVALID_SERVICE = "invalid_service"
    STATE_INVALID_OR_EXPIRED = "state_invalid_or_expired"
    TENANT_MISMATCH = "tenant_mismatch"
    EXCHANGE_FAILED = "exchange_failed"


class OAuthLifecycleCoordinator:
    """Drives a single OAuth connect from authorize URL to stored credential."""

    def __init__(
        self,
        session: Session,
        cipher: TokenCipher,
        registry: ProviderRegistry,
        mirror: ExternalCredentialMirror,
        config: Optional[AppConfig] = None,
        state_store: Optional[StateTokenStore] = None,
        credential_service: Optional[CredentialService] = None,
    ):
        self.config = config or get_config()
        self.cipher = cipher
        self.registry = registry
        self.state_store = state_store or StateTokenStore(
            session, default_ttl_seconds=self.config.oauth.state_ttl_seconds
        )
        self.credential_service = credential_service or CredentialService(
            session, cipher, registry, mirror, config=self.config
        )
        self.logger = get_logger()

    def _transition(self, flow_state: OAuthFlowState, **context) -> None:
        level = self.logger.warning if flow_state in _FAILURE_STATES else self.logger.info
        level(f"OAuth flow {flow_state.value}", extra={"flow_state": flow_state.value, **context})

    @tenant_aware
    def initiate(self, tenant_id: str, user_id: str, service_name: str) -> OAuthInitiateResult:
        """
        Start a connect: issue a state token and build the provider authorize URL.

        Raises:
            UnsupportedServiceError: No OAuth adapter for the service
            ConfigError: Provider client id not configured
        """
        try:
            adapter = self.registry.get_oauth(service_name)
        except UnsupportedServiceError:
            self._transition(
                OAuthFlowState.INVALID_SERVICE, tenant_id=tenant_id, service_name=service_name
            )
            raise

        # No state row for a flow that cannot reach the provider
        adapter.ensure_configured()

        callback_url = self.config.oauth.callback_url
        state = self.state_store.issue(
            tenant_id=tenant_id,
            user_id=user_id,
            service_name=service_name,
            redirect_uri=callback_url,
            scopes=list(adapter.profile.scopes),
        )
        auth_url = adapter.build_authorization_url(state, callback_url)

        self._transition(
            OAuthFlowState.INITIATED,
            tenant_id=tenant_id,
            user_id=user_id,
            service_name=service_name,
        )
        return OAuthInitiateResult(auth_url=auth_url, callback_url=callback_url)

    def complete_exchange(
        self, code: str, state: str, tenant_id: Optional[str] = None
    ) -> OAuthExchangeResult:
        """
        Finish a connect from the provider redirect.

        Args:
            code: Authorization code from the provider
            state: State token issued by initiate
            tenant_id: Authenticated caller's tenant; None for the unauthenticated
                browser callback, where the state row alone identifies the tenant

        Raises:
            StateInvalidOrExpiredError: Unknown, replayed or expired state
            TenantMismatchError: Caller's tenant did not start this flow
            ExchangeError: Provider rejected the code
        """
        self._transition(OAuthFlowState.CALLBACK_RECEIVED, tenant_id=tenant_id)

        try:
            flow = self.state_store.consume(state)
        except StateInvalidOrExpiredError as e:
            self._transition(
                OAuthFlowState.STATE_INVALID_OR_EXPIRED, tenant_id=tenant_id, reason=e.reason
            )
            raise

        if tenant_id is not None and tenant_id != flow.tenant_id:
            self._transition(
                OAuthFlowState.TENANT_MISMATCH,
                tenant_id=tenant_id,
                state_tenant_id=flow.tenant_id,
                service_name=flow.service_name,
            )
            raise TenantMismatchError(tenant_id=tenant_id, service_name=flow.service_name)

        self._transition(
            OAuthFlowState.STATE_VALIDATED,
            tenant_id=flow.tenant_id,
            service_name=flow.service_name,
        )

        adapter = self.registry.get_oauth(flow.service_name)
        try:
            token_set = adapter.exchange_code(code, flow.redirect_uri)
        except ExchangeError as e:
            self._transition(
                OAuthFlowState.EXCHANGE_FAILED,
                tenant_id=flow.tenant_id,
                service_name=flow.service_name,
                http_status=e.http_status,
            )
            raise

        self._transition(
            OAuthFlowState.CODE_EXCHANGED,
            tenant_id=flow.tenant_id,
            service_name=flow.service_name,
        )

        tokens = token_set.to_storage()
        ciphertext, nonce = self.cipher.encrypt(tokens)
        expires_at = (
            utc_now() + timedelta(seconds=token_set.expires_in)
            if token_set.expires_in
            else None
        )
        services = list(adapter.services_for(flow.service_name))

        records = self.credential_service.store_connection(
            flow.tenant_id,
            services,
            CredentialKind.OAUTH2,
            ciphertext,
            nonce,
            flow.scopes,
            expires_at,
            adapter,
            tokens,
        )
        self._transition(
            OAuthFlowState.TOKENS_PERSISTED,
            tenant_id=flow.tenant_id,
            service_name=flow.service_name,
            services=services,
        )

        mirrored = [r.service_name for r in records if r.mirror_credential_id]
        self._transition(
            OAuthFlowState.MIRRORED,
            tenant_id=flow.tenant_id,
            service_name=flow.service_name,
            mirrored=mirrored,
        )
        self._transition(
            OAuthFlowState.DONE, tenant_id=flow.tenant_id, service_name=flow.service_name
        )
        return OAuthExchangeResult(
            success=True, services=services, service_name=flow.service_name
        )


_FAILURE_STATES = frozenset(
    {
        OAuthFlowState.INVALID_SERVICE,
        OAuthFlowState.STATE_INVALID_OR_EXPIRED,
        OAuthFlowState.TENANT_MISMATCH,
        OAuthFlowState.EXCHANGE_FAILED,
    }
)
