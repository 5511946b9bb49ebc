"""
HubSpot adapter. Access tokens expire but are not refreshed here; an expired
HubSpot connection surfaces as reconnect-required.
"""

from typing import Any, Dict

from ..constants import EnvironmentVariable, ServiceName
from ..schemas.credential_schemas import CanonicalTokenSet
from .base import ProviderAdapter, ProviderProfile

HUBSPOT_SCOPES = (
    "crm.objects.contacts.write",
    "crm.objects.contacts.read",
    "crm.objects.deals.read",
    "crm.objects.deals.write",
)


class HubSpotAdapter(ProviderAdapter):
    profile = ProviderProfile(
        name=ServiceName.HUBSPOT.value,
        display_name="HubSpot",
        authorize_url="https://app.hubspot.com/oauth/authorize",
        token_url="https://api.hubapi.com/oauth/v1/token",
        scopes=HUBSPOT_SCOPES,
        scope_separator=" ",
        client_id_setting=EnvironmentVariable.HUBSPOT_CLIENT_ID.value,
        tokens_expire=True,
    )

    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        body = self._exchange(
            data={
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            }
        )
        return self._stamp(
            {
                "access_token": body.get("access_token"),
                "refresh_token": body.get("refresh_token"),
                "token_type": body.get("token_type"),
                "expires_in": body.get("expires_in"),
            }
        )

    def shape_for_mirror(self, service_name: str, tokens: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "accessToken": tokens.get("access_token"),
            "refreshToken": tokens.get("refresh_token"),
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
        }
