"""
Google adapter.

One consent covers Gmail, Sheets and Drive; the resulting token set is
persisted once per logical service.
"""

from typing import Any, Dict

import requests

from ..constants import GOOGLE_SERVICES, EnvironmentVariable, ServiceName, Timeouts
from ..exceptions import ExchangeError, RefreshFailedError
from ..schemas.credential_schemas import CanonicalTokenSet
from .base import ProviderAdapter, ProviderProfile

GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
)


class GoogleAdapter(ProviderAdapter):
    profile = ProviderProfile(
        name=ServiceName.GOOGLE.value,
        display_name="Google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=GOOGLE_SCOPES,
        scope_separator=" ",
        services=GOOGLE_SERVICES,
        client_id_setting=EnvironmentVariable.GOOGLE_CLIENT_ID.value,
        tokens_expire=True,
    )

    def authorization_params(self, state: str, redirect_uri: str) -> Dict[str, str]:
        params = super().authorization_params(state, redirect_uri)
        # Without both, Google only issues a refresh token on first consent
        params["access_type"] = "offline"
        params["prompt"] = "consent"
        return params

    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        body = self._exchange(
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        return self._stamp(body)

    def refresh_access_token(self, refresh_token: str) -> CanonicalTokenSet:
        """
        Trade a refresh token for a new access token.

        The response usually omits refresh_token; callers keep the stored one.

        Raises:
            RefreshFailedError: On transport failure or a non-2xx response
        """
        try:
            response = self.http.post(
                self.profile.token_url,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                },
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RefreshFailedError(
                f"Token refresh failed for {self.name}: {e}",
                service=self.name,
                detail=str(e),
                cause=e,
            ) from e

        if not response.ok:
            raise RefreshFailedError(
                f"Token refresh failed for {self.name}: {response.text}",
                service=self.name,
                detail=response.text,
                http_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RefreshFailedError(
                f"Token refresh failed for {self.name}: response is not JSON",
                service=self.name,
                detail=response.text,
                cause=e,
            ) from e
        if not isinstance(body, dict) or not body.get("access_token"):
            raise RefreshFailedError(
                f"Token refresh failed for {self.name}: response has no access_token",
                service=self.name,
                detail=response.text,
                http_status=response.status_code,
            )

        body.setdefault("expires_in", Timeouts.DEFAULT_TOKEN_LIFETIME)
        try:
            return self._stamp(body)
        except ExchangeError as e:
            raise RefreshFailedError(
                f"Token refresh failed for {self.name}: unusable token response",
                service=self.name,
                detail=response.text,
                cause=e,
            ) from e

    def shape_for_mirror(self, service_name: str, tokens: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "oauthTokenData": {
                "access_token": tokens.get("access_token"),
                "refresh_token": tokens.get("refresh_token"),
                "token_type": tokens.get("token_type") or "Bearer",
                "expires_in": tokens.get("expires_in"),
            },
        }
