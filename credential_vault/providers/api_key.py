"""
Adapter for services connected with a pasted or platform API key.

These services have no OAuth flow; the adapter exists so the registry can
answer every service name and shape keys for the workflow engine.
"""

from typing import Any, Dict

from ..exceptions import UnsupportedServiceError
from ..schemas.credential_schemas import CanonicalTokenSet
from .base import ProviderAdapter, ProviderProfile


class ApiKeyAdapter(ProviderAdapter):
    def __init__(self, service_name: str, display_name: str, **kwargs):
        super().__init__(**kwargs)
        self.profile = ProviderProfile(
            name=service_name,
            display_name=display_name,
            tokens_expire=False,
            supports_oauth=False,
        )

    def _not_oauth(self) -> UnsupportedServiceError:
        return UnsupportedServiceError(
            f"OAuth not supported for {self.name}. Use credentials-create for API keys.",
            service_name=self.name,
        )

    def build_authorization_url(self, state: str, redirect_uri: str) -> str:
        raise self._not_oauth()

    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        raise self._not_oauth()

    def shape_for_mirror(self, service_name: str, tokens: Dict[str, Any]) -> Dict[str, Any]:
        return {"apiKey": tokens.get("api_key")}
