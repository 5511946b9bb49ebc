"""Vault services: state tokens, credential storage, resolution, OAuth flow."""

from .credential_mirror import ExternalCredentialMirror
from .credential_service import CredentialService
from .credential_store import CredentialStore
from .oauth_lifecycle import OAuthFlowState, OAuthLifecycleCoordinator
from .rate_limit_service import RateLimiter
from .state_token_store import StateTokenStore
from .token_resolver import AccessTokenResolver

__all__ = [
    "AccessTokenResolver",
    "CredentialService",
    "CredentialStore",
    "ExternalCredentialMirror",
    "OAuthFlowState",
    "OAuthLifecycleCoordinator",
    "RateLimiter",
    "StateTokenStore",
]
