"""
Provider adapter interface.

Each OAuth provider the vault talks to is described by a static
ProviderProfile and implemented by a ProviderAdapter subclass that knows how
to build the authorize URL, exchange a code, optionally refresh, and shape
tokens for the workflow engine.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..constants import MIRROR_CREDENTIAL_TYPES, AuthStyle, Timeouts
from ..db.db_base import utc_now
from ..exceptions import ConfigError, ExchangeError, NoRefreshTokenError
from ..schemas.credential_schemas import CanonicalTokenSet
from ..utils.logger import get_logger


class ProviderProfile(BaseModel):
    """Static, compiled-in description of a provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    authorize_url: Optional[str] = None
    token_url: Optional[str] = None
    scopes: Tuple[str, ...] = ()
    scope_separator: str = " "
    auth_style: AuthStyle = AuthStyle.FORM_BODY
    services: Tuple[str, ...] = Field(
        default=(), description="Logical services persisted from one exchange"
    )
    client_id_setting: Optional[str] = None
    tokens_expire: bool = True
    supports_oauth: bool = True


class ProviderAdapter(ABC):
    """Base class for per-provider OAuth behaviour."""

    profile: ProviderProfile

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        http: Optional[requests.Session] = None,
        timeout: int = Timeouts.HTTP_REQUEST,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.http = http or requests.Session()
        self.timeout = timeout
        self.logger = get_logger()

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def services(self) -> Tuple[str, ...]:
        return self.profile.services or (self.profile.name,)

    @property
    def tokens_expire(self) -> bool:
        return self.profile.tokens_expire

    def ensure_configured(self) -> None:
        """Raise ConfigError unless the client id needed for the authorize step is set."""
        if not self.client_id:
            setting = self.profile.client_id_setting or f"{self.name.upper()}_CLIENT_ID"
            raise ConfigError(f"{setting} not configured", setting=setting, provider=self.name)

    def services_for(self, service_name: str) -> Tuple[str, ...]:
        """Services that one exchange for service_name should persist."""
        return self.services if self.profile.services else (service_name,)

    # ==================== AUTHORIZE ====================

    def authorization_params(self, state: str, redirect_uri: str) -> Dict[str, str]:
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
        }
        if self.profile.scopes:
            params["scope"] = self.profile.scope_separator.join(self.profile.scopes)
        return params

    def build_authorization_url(self, state: str, redirect_uri: str) -> str:
        """
        Build the provider authorize URL carrying the opaque state token.

        Raises:
            ConfigError: If the client id is not configured
        """
        self.ensure_configured()
        return f"{self.profile.authorize_url}?{urlencode(self.authorization_params(state, redirect_uri))}"

    # ==================== TOKEN ENDPOINT ====================

    @abstractmethod
    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        """Exchange an authorization code for a canonical token set."""

    def refresh_access_token(self, refresh_token: str) -> CanonicalTokenSet:
        """Providers without a refresh flow surface as reconnect-required."""
        raise NoRefreshTokenError(
            f"{self.profile.display_name} tokens cannot be refreshed, reconnect required",
            provider=self.name,
        )

    def _post_token_request(
        self,
        data: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """POST to the token endpoint using the profile's auth style."""
        auth = None
        if self.profile.auth_style == AuthStyle.HTTP_BASIC:
            auth = (self.client_id or "", self.client_secret or "")

        try:
            return self.http.post(
                self.profile.token_url,
                data=data,
                json=json_body,
                auth=auth,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExchangeError(
                f"{self.profile.display_name} token endpoint unreachable",
                provider=self.name,
                cause=e,
            ) from e

    def _exchange(
        self,
        data: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a code exchange and return the decoded body of a 2xx response."""
        response = self._post_token_request(data=data, json_body=json_body)
        if not response.ok:
            raise ExchangeError(
                f"{self.profile.display_name} token exchange failed",
                provider=self.name,
                http_status=response.status_code,
                body=response.text,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ExchangeError(
                f"{self.profile.display_name} token response is not JSON",
                provider=self.name,
                http_status=response.status_code,
                body=response.text,
                cause=e,
            ) from e
        if not isinstance(body, dict):
            raise ExchangeError(
                f"{self.profile.display_name} token response is not a JSON object",
                provider=self.name,
                http_status=response.status_code,
                body=response.text,
            )

        self.logger.info(
            "Provider code exchange succeeded",
            extra={"provider": self.name, "http_status": response.status_code},
        )
        return body

    def _stamp(self, tokens: Dict[str, Any]) -> CanonicalTokenSet:
        """Normalize a provider response into a canonical set stamped with obtained_at."""
        tokens = {k: v for k, v in tokens.items() if v is not None}
        tokens["obtained_at"] = utc_now().isoformat()
        try:
            return CanonicalTokenSet.model_validate(tokens)
        except PydanticValidationError as e:
            raise ExchangeError(
                f"{self.profile.display_name} returned an unusable token response",
                provider=self.name,
                cause=e,
            ) from e

    # ==================== MIRROR ====================

    def mirror_credential_type(self, service_name: str) -> Optional[str]:
        return MIRROR_CREDENTIAL_TYPES.get(service_name)

    def shape_for_mirror(self, service_name: str, tokens: Dict[str, Any]) -> Dict[str, Any]:
        """Map a decrypted token map to the workflow engine's credential fields."""
        return {"apiKey": tokens.get("access_token")}
