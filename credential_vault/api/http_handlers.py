"""
HTTP handlers for the credential vault Function App.

Each handler takes a ``func.HttpRequest`` and returns a ``func.HttpResponse``;
function_app.py only binds them to routes. Errors raised as BaseError map to
their status code, anything else to a generic 500.
"""

import html
import json
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Iterator, Optional

import azure.functions as func
import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import DISPLAY_NAMES
from ..context.tenant_context import tenant_context
from ..db.db_config import get_db_manager
from ..exceptions import BaseError, ValidationError, clear_correlation_id, set_correlation_id
from ..providers.registry import ProviderRegistry, build_default_registry
from ..schemas.credential_schemas import (
    ManualConnectRequest,
    OAuthExchangeRequest,
    OAuthInitiateRequest,
    ServiceRequest,
)
from ..services.credential_mirror import ExternalCredentialMirror
from ..services.credential_service import CredentialService
from ..services.oauth_lifecycle import OAuthLifecycleCoordinator
from ..services.rate_limit_service import RateLimiter
from ..services.state_token_store import StateTokenStore
from ..services.token_resolver import AccessTokenResolver
from ..utils.auth_utils import AuthContext, authenticate_request
from ..utils.encryption_utils import TokenCipher
from ..utils.json_utils import dumps
from ..utils.logger import get_logger

logger = get_logger()


class VaultRuntime:
    """Process-wide collaborators shared by every request: key, adapters, mirror client."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        cipher: Optional[TokenCipher] = None,
        registry: Optional[ProviderRegistry] = None,
        mirror: Optional[ExternalCredentialMirror] = None,
        http: Optional[requests.Session] = None,
    ):
        self.config = config or get_config()
        http = http or requests.Session()
        self.cipher = cipher or TokenCipher.from_config(self.config)
        self.registry = registry or build_default_registry(self.config, http)
        self.mirror = mirror or ExternalCredentialMirror.from_config(self.config, http)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db_manager = get_db_manager()
        session = db_manager.get_session()
        try:
            yield session
        finally:
            db_manager.close_session(session)

    def coordinator(self, session: Session) -> OAuthLifecycleCoordinator:
        return OAuthLifecycleCoordinator(
            session, self.cipher, self.registry, self.mirror, config=self.config
        )

    def credentials(self, session: Session) -> CredentialService:
        return CredentialService(
            session, self.cipher, self.registry, self.mirror, config=self.config
        )

    def resolver(self, session: Session) -> AccessTokenResolver:
        return AccessTokenResolver(session, self.cipher, self.registry, config=self.config)


_runtime: Optional[VaultRuntime] = None


def get_runtime() -> VaultRuntime:
    """Get the shared runtime, building it from config on first use."""
    global _runtime
    if _runtime is None:
        _runtime = VaultRuntime()
    return _runtime


def set_runtime(runtime: Optional[VaultRuntime]) -> None:
    """Replace the shared runtime (tests)."""
    global _runtime
    _runtime = runtime


# ==================== RESPONSES ====================


def cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": get_config().oauth.frontend_url,
        "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    }


def json_response(body: Any, status_code: int = 200) -> func.HttpResponse:
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json")
    return func.HttpResponse(
        dumps(body),
        status_code=status_code,
        mimetype="application/json",
        headers=cors_headers(),
    )


def html_response(page: str, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(page, status_code=status_code, mimetype="text/html")


def error_response(error: Exception) -> func.HttpResponse:
    if isinstance(error, BaseError):
        return json_response(
            error.to_dict(include_cause=get_config().debug), status_code=error.status_code
        )
    logger.exception("Unhandled error in HTTP handler", extra={"error": str(error)})
    return json_response({"error": "Internal server error"}, status_code=500)


def parse_body(req: func.HttpRequest, model: type) -> Any:
    """Validate a JSON request body into a pydantic model."""
    try:
        payload = req.get_json()
    except ValueError as e:
        raise ValidationError("Request body must be JSON", cause=e) from e
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            f"Invalid request: {first.get('msg', 'validation failed')}", field=field, cause=e
        ) from e


# ==================== ENDPOINT WRAPPER ====================


def http_endpoint(handler: Callable) -> Callable:
    """
    Wrap an authenticated handler with CORS preflight, correlation id, auth,
    rate limiting and error mapping.

    The handler is called as ``handler(req, auth, runtime, session)``.
    """

    @wraps(handler)
    def wrapper(req: func.HttpRequest) -> func.HttpResponse:
        if req.method == "OPTIONS":
            return func.HttpResponse("ok", status_code=200, headers=cors_headers())

        set_correlation_id(req.headers.get("x-request-id") or str(uuid.uuid4()))
        try:
            runtime = get_runtime()
            auth = authenticate_request(req.headers)
            with tenant_context(auth.tenant_id), runtime.session() as session:
                if runtime.config.rate_limit.enabled:
                    RateLimiter(session).hit(auth.tenant_id)
                return handler(req, auth, runtime, session)
        except Exception as e:
            return error_response(e)
        finally:
            clear_correlation_id()

    return wrapper


# ==================== OAUTH ====================


@http_endpoint
def handle_oauth_initiate(
    req: func.HttpRequest, auth: AuthContext, runtime: VaultRuntime, session: Session
) -> func.HttpResponse:
    body = parse_body(req, OAuthInitiateRequest)
    result = runtime.coordinator(session).initiate(auth.tenant_id, auth.user_id, body.service_name)
    return json_response(result)


@http_endpoint
def handle_oauth_exchange(
    req: func.HttpRequest, auth: AuthContext, runtime: VaultRuntime, session: Session
) -> func.HttpResponse:
    body = parse_body(req, OAuthExchangeRequest)
    result = runtime.coordinator(session).complete_exchange(
        body.code, body.state, tenant_id=auth.tenant_id
    )
    return json_response(result)


_CALLBACK_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body>
<h1>{heading}</h1>
<p>{detail}</p>
<script>
  if (window.opener) {{
    window.opener.postMessage({message}, {origin});
    setTimeout(function () {{ window.close(); }}, 1500);
  }}
</script>
</body>
</html>
"""


def _script_literal(value: Any) -> str:
    return json.dumps(value).replace("</", "<\\/")


def render_callback_page(success: bool, service_name: Optional[str], message: str) -> str:
    """Confirmation page that reports the outcome to the opener window."""
    if success:
        display = DISPLAY_NAMES.get(service_name or "", service_name or "")
        title, heading = "Connected", f"{display} connected"
        detail = "You can close this window."
        payload = {"type": "oauth-success", "service": service_name}
    else:
        title, heading = "Connection failed", "Connection failed"
        detail = message
        payload = {"type": "oauth-error", "message": message}

    return _CALLBACK_PAGE.format(
        title=html.escape(title),
        heading=html.escape(heading),
        detail=html.escape(detail),
        message=_script_literal(payload),
        origin=_script_literal(get_config().oauth.frontend_url),
    )


def handle_oauth_callback(req: func.HttpRequest) -> func.HttpResponse:
    """
    Browser redirect target for the provider.

    The state row identifies the tenant; the request itself is unauthenticated.
    """
    set_correlation_id(req.headers.get("x-request-id") or str(uuid.uuid4()))
    try:
        denied = req.params.get("error")
        if denied:
            return html_response(
                render_callback_page(False, None, f"OAuth denied: {denied}"), status_code=400
            )

        code, state = req.params.get("code"), req.params.get("state")
        if not code or not state:
            return html_response(
                render_callback_page(False, None, "Missing code or state parameter"),
                status_code=400,
            )

        runtime = get_runtime()
        with runtime.session() as session:
            result = runtime.coordinator(session).complete_exchange(code, state)
        return html_response(render_callback_page(True, result.service_name, ""))
    except BaseError as e:
        return html_response(render_callback_page(False, None, e.message), e.status_code)
    except Exception as e:
        logger.exception("Unhandled error in OAuth callback", extra={"error": str(e)})
        return html_response(
            render_callback_page(False, None, "Internal server error"), status_code=500
        )
    finally:
        clear_correlation_id()


# ==================== CREDENTIALS ====================


@http_endpoint
def handle_credentials_create(
    req: func.HttpRequest, auth: AuthContext, runtime: VaultRuntime, session: Session
) -> func.HttpResponse:
    body = parse_body(req, ManualConnectRequest)
    summary = runtime.credentials(session).connect_api_key(
        auth.tenant_id,
        body.service_name,
        api_key=body.api_key,
        use_platform_key=body.use_platform_key,
    )
    return json_response({"success": True, "credential": summary.model_dump(mode="json")}, 201)


@http_endpoint
def handle_credentials_disconnect(
    req: func.HttpRequest, auth: AuthContext, runtime: VaultRuntime, session: Session
) -> func.HttpResponse:
    body = parse_body(req, ServiceRequest)
    summary = runtime.credentials(session).disconnect(auth.tenant_id, body.service_name)
    return json_response({"success": True, "credential": summary.model_dump(mode="json")})


@http_endpoint
def handle_credentials_list(
    req: func.HttpRequest, auth: AuthContext, runtime: VaultRuntime, session: Session
) -> func.HttpResponse:
    summaries = runtime.credentials(session).list_credentials(auth.tenant_id)
    return json_response({"credentials": [s.model_dump(mode="json") for s in summaries]})


# ==================== MAINTENANCE ====================


def run_state_cleanup() -> Dict[str, int]:
    """Sweep expired OAuth states and stale rate-limit windows."""
    db_manager = get_db_manager()
    session = db_manager.get_session()
    try:
        states = StateTokenStore(session).sweep_expired()
        windows = RateLimiter(session).sweep_expired()
    finally:
        db_manager.close_session(session)

    logger.info(
        "Maintenance sweep complete",
        extra={"expired_states": states, "expired_rate_windows": windows},
    )
    return {"expired_states": states, "expired_rate_windows": windows}
