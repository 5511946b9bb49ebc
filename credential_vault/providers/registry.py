"""
Provider adapter registry keyed by service name.

Several service names can share one adapter (Google serves gmail,
google_sheets and google_drive).
"""

from typing import Dict, List, Optional

import requests

from ..config import AppConfig, get_config
from ..constants import GOOGLE_SERVICES, ServiceName
from ..exceptions import UnsupportedServiceError
from .api_key import ApiKeyAdapter
from .base import ProviderAdapter
from .google import GoogleAdapter
from .hubspot import HubSpotAdapter
from .notion import NotionAdapter
from .slack import SlackAdapter
from .stripe import StripeAdapter


class ProviderRegistry:
    """Maps service names to the adapter that handles them."""

    def __init__(self):
        self._adapters: Dict[str, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter, *aliases: str) -> None:
        """Register an adapter under its own name and any extra service names."""
        for service_name in (adapter.name, *aliases):
            self._adapters[service_name] = adapter

    def get(self, service_name: str) -> ProviderAdapter:
        """
        Look up the adapter for a service.

        Raises:
            UnsupportedServiceError: If no adapter handles the service
        """
        adapter = self._adapters.get(service_name)
        if adapter is None:
            raise UnsupportedServiceError(
                f"Unsupported service: {service_name}", service_name=service_name
            )
        return adapter

    def get_oauth(self, service_name: str) -> ProviderAdapter:
        """Look up an adapter that can run the authorization-code flow."""
        adapter = self._adapters.get(service_name)
        if adapter is None or not adapter.profile.supports_oauth:
            raise UnsupportedServiceError(
                f"OAuth not supported for {service_name}. Use credentials-create for API keys.",
                service_name=service_name,
            )
        return adapter

    def is_oauth(self, service_name: str) -> bool:
        adapter = self._adapters.get(service_name)
        return adapter is not None and adapter.profile.supports_oauth

    def service_names(self) -> List[str]:
        return sorted(self._adapters)


def build_default_registry(
    config: Optional[AppConfig] = None, http: Optional[requests.Session] = None
) -> ProviderRegistry:
    """Register every compiled-in provider with client credentials from config."""
    config = config or get_config()
    creds = config.providers
    http = http or requests.Session()
    timeout = config.oauth.http_timeout_seconds

    registry = ProviderRegistry()
    registry.register(
        GoogleAdapter(creds.google_client_id, creds.google_client_secret, http, timeout),
        *GOOGLE_SERVICES,
    )
    registry.register(
        SlackAdapter(creds.slack_client_id, creds.slack_client_secret, http, timeout)
    )
    registry.register(
        NotionAdapter(creds.notion_client_id, creds.notion_client_secret, http, timeout)
    )
    registry.register(
        HubSpotAdapter(creds.hubspot_client_id, creds.hubspot_client_secret, http, timeout)
    )
    registry.register(
        StripeAdapter(creds.stripe_client_id, creds.stripe_secret_key, http, timeout)
    )
    for service_name, display_name in (
        (ServiceName.OPENAI.value, "OpenAI"),
        (ServiceName.ANTHROPIC.value, "Anthropic"),
        (ServiceName.SUPABASE.value, "Supabase"),
    ):
        registry.register(ApiKeyAdapter(service_name, display_name, http=http, timeout=timeout))

    return registry
