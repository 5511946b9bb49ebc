"""
Slack adapter. Bot tokens do not expire and there is no refresh flow.
"""

from typing import Any, Dict

from ..constants import EnvironmentVariable, ServiceName
from ..exceptions import ExchangeError
from ..schemas.credential_schemas import CanonicalTokenSet
from .base import ProviderAdapter, ProviderProfile

SLACK_SCOPES = (
    "chat:write",
    "channels:read",
    "channels:history",
    "groups:read",
    "groups:history",
)


class SlackAdapter(ProviderAdapter):
    profile = ProviderProfile(
        name=ServiceName.SLACK.value,
        display_name="Slack",
        authorize_url="https://slack.com/oauth/v2/authorize",
        token_url="https://slack.com/api/oauth.v2.access",
        scopes=SLACK_SCOPES,
        scope_separator=",",
        client_id_setting=EnvironmentVariable.SLACK_CLIENT_ID.value,
        tokens_expire=False,
    )

    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        body = self._exchange(
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
            }
        )
        # Slack reports failures in a 200 body
        if not body.get("ok"):
            raise ExchangeError(
                "Slack token exchange failed",
                provider=self.name,
                http_status=200,
                body=str(body.get("error", "unknown_error")),
            )

        return self._stamp(
            {
                "access_token": body.get("access_token"),
                "token_type": "Bearer",
                "bot_user_id": body.get("bot_user_id"),
                "team_id": (body.get("team") or {}).get("id"),
            }
        )

    def shape_for_mirror(self, service_name: str, tokens: Dict[str, Any]) -> Dict[str, Any]:
        return {"accessToken": tokens.get("access_token")}
