"""
Notion adapter. Uses HTTP Basic client auth with a JSON body; tokens do not expire.
"""

from typing import Dict

from ..constants import AuthStyle, EnvironmentVariable, ServiceName
from ..schemas.credential_schemas import CanonicalTokenSet
from .base import ProviderAdapter, ProviderProfile

NOTION_SCOPES = ("read_content", "insert_content", "update_content")


class NotionAdapter(ProviderAdapter):
    profile = ProviderProfile(
        name=ServiceName.NOTION.value,
        display_name="Notion",
        authorize_url="https://api.notion.com/v1/oauth/authorize",
        token_url="https://api.notion.com/v1/oauth/token",
        scopes=NOTION_SCOPES,
        auth_style=AuthStyle.HTTP_BASIC,
        client_id_setting=EnvironmentVariable.NOTION_CLIENT_ID.value,
        tokens_expire=False,
    )

    def authorization_params(self, state: str, redirect_uri: str) -> Dict[str, str]:
        # Capabilities are chosen in the Notion integration settings, not per request
        return {
            "client_id": self.client_id or "",
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "owner": "user",
            "state": state,
        }

    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        body = self._exchange(
            json_body={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            }
        )
        return self._stamp(
            {
                "access_token": body.get("access_token"),
                "token_type": body.get("token_type"),
                "workspace_id": body.get("workspace_id"),
                "workspace_name": body.get("workspace_name"),
                "bot_id": body.get("bot_id"),
            }
        )
