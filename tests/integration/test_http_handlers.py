"""
HTTP surface tests: real func.HttpRequest objects through the handlers,
SQLite behind them and stubbed provider and engine HTTP.
"""

import json
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import azure.functions as func
import pytest

from credential_vault.api import (
    VaultRuntime,
    handle_credentials_create,
    handle_credentials_disconnect,
    handle_credentials_list,
    handle_oauth_callback,
    handle_oauth_exchange,
    handle_oauth_initiate,
    run_state_cleanup,
    set_runtime,
)
from credential_vault.db import (
    CredentialRecord,
    OAuthStateRecord,
    RateLimitWindow,
    as_utc,
    utc_now,
)
from credential_vault.utils.auth_utils import issue_access_token
from tests.conftest import TEST_AUTH_SECRET, TEST_FRONTEND_URL, TEST_MIRROR_URL
from tests.fixtures.factories import (
    CredentialRecordFactory,
    ExpiredOAuthStateFactory,
    GoogleCredentialFactory,
    OAuthStateFactory,
)

CREDENTIALS_URL = f"{TEST_MIRROR_URL}/credentials"
SLACK_TOKEN_URL = "https://slack.com/api/oauth.v2.access"

pytestmark = pytest.mark.integration


@pytest.fixture
def runtime(db_session, app_config, cipher, registry, mirror):
    vault = VaultRuntime(config=app_config, cipher=cipher, registry=registry, mirror=mirror)
    set_runtime(vault)
    yield vault
    set_runtime(None)


def auth_headers(tenant_id="tenant-123", user_id="user-456"):
    token = issue_access_token(user_id, tenant_id, TEST_AUTH_SECRET)
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


def post(route, body=None, headers=None):
    return func.HttpRequest(
        method="POST",
        url=f"http://localhost/api/{route}",
        headers=headers if headers is not None else auth_headers(),
        params={},
        body=json.dumps(body).encode("utf-8") if body is not None else b"",
    )


def get(route, params=None, headers=None):
    return func.HttpRequest(
        method="GET",
        url=f"http://localhost/api/{route}",
        headers=headers if headers is not None else auth_headers(),
        params=params or {},
        body=b"",
    )


def body_of(response):
    return json.loads(response.get_body())


def page_of(response):
    return response.get_body().decode("utf-8")


class TestEndpointWrapper:

    def test_preflight_returns_cors_headers(self, runtime):
        request = func.HttpRequest(method="OPTIONS", url="http://localhost/api/oauth-initiate", body=b"")

        response = handle_oauth_initiate(request)

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == TEST_FRONTEND_URL

    def test_missing_token_is_401(self, runtime):
        response = handle_credentials_list(get("credentials-list", headers={}))

        assert response.status_code == 401
        assert body_of(response)["error"] == "Missing authorization header"

    def test_forged_token_is_401(self, runtime):
        token = issue_access_token("user-456", "tenant-123", "someone-elses-secret")

        response = handle_credentials_list(
            get("credentials-list", headers={"Authorization": f"Bearer {token}"})
        )

        assert response.status_code == 401

    def test_non_ascii_token_is_401(self, runtime):
        response = handle_credentials_list(
            get("credentials-list", headers={"Authorization": "Bearer abc.éé"})
        )

        assert response.status_code == 401
        assert body_of(response)["error"] == "Malformed access token"

    def test_invalid_json_is_400(self, runtime):
        request = func.HttpRequest(
            method="POST",
            url="http://localhost/api/oauth-initiate",
            headers=auth_headers(),
            body=b"{not json",
        )

        response = handle_oauth_initiate(request)

        assert response.status_code == 400
        assert body_of(response)["error"] == "Request body must be JSON"
        assert "cause" not in body_of(response)

    def test_debug_config_adds_error_cause(self, runtime, app_config):
        app_config.debug = True
        request = func.HttpRequest(
            method="POST",
            url="http://localhost/api/oauth-initiate",
            headers=auth_headers(),
            body=b"{not json",
        )

        body = body_of(handle_oauth_initiate(request))

        assert body["error"] == "Request body must be JSON"
        assert body["cause"]["type"] == "JSONDecodeError"

    def test_missing_field_is_400(self, runtime):
        response = handle_oauth_initiate(post("oauth-initiate", {}))

        assert response.status_code == 400
        assert body_of(response)["error"].startswith("Invalid request")

    def test_rate_limit_is_429(self, runtime, app_config, db_session):
        app_config.rate_limit.max_requests = 2

        statuses = [handle_credentials_list(get("credentials-list")).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        assert db_session.query(RateLimitWindow).one().tenant_id == "tenant-123"

    def test_rate_limit_is_per_tenant(self, runtime, app_config):
        app_config.rate_limit.max_requests = 1
        handle_credentials_list(get("credentials-list"))

        response = handle_credentials_list(get("credentials-list", headers=auth_headers("tenant-b")))

        assert response.status_code == 200


class TestOAuthEndpoints:

    def test_initiate_returns_auth_and_callback_urls(self, runtime, db_session):
        response = handle_oauth_initiate(post("oauth-initiate", {"service_name": "slack"}))

        assert response.status_code == 200
        payload = body_of(response)
        assert payload["callback_url"] == f"{TEST_FRONTEND_URL}/oauth/callback"
        assert payload["auth_url"].startswith("https://slack.com/oauth/v2/authorize?")
        assert db_session.query(OAuthStateRecord).count() == 1

    def test_initiate_accepts_camel_case_service_name(self, runtime):
        response = handle_oauth_initiate(post("oauth-initiate", {"serviceName": "notion"}))

        assert response.status_code == 200

    def test_initiate_unsupported_service_is_400(self, runtime):
        response = handle_oauth_initiate(post("oauth-initiate", {"service_name": "openai"}))

        assert response.status_code == 400
        assert "OAuth not supported for openai" in body_of(response)["error"]

    def test_exchange_connects_service(self, runtime, http, db_session):
        state = OAuthStateFactory().state_token
        http.queue("POST", SLACK_TOKEN_URL, body={"ok": True, "access_token": "xoxb-1"})
        http.queue("POST", CREDENTIALS_URL, body={"id": "engine-1"})

        response = handle_oauth_exchange(post("oauth-exchange", {"code": "c", "state": state}))

        assert response.status_code == 200
        assert body_of(response) == {"success": True, "services": ["slack"], "service_name": "slack"}
        assert db_session.query(CredentialRecord).count() == 1

    def test_exchange_for_other_tenant_is_403(self, runtime, http, db_session):
        state = OAuthStateFactory(tenant_id="tenant-other").state_token

        response = handle_oauth_exchange(post("oauth-exchange", {"code": "c", "state": state}))

        assert response.status_code == 403
        assert http.calls == []
        assert db_session.query(CredentialRecord).count() == 0

    def test_exchange_with_expired_state_is_400(self, runtime):
        state = ExpiredOAuthStateFactory().state_token

        response = handle_oauth_exchange(post("oauth-exchange", {"code": "c", "state": state}))

        assert response.status_code == 400

    def test_exchange_provider_rejection_is_502(self, runtime, http):
        state = OAuthStateFactory().state_token
        http.queue("POST", SLACK_TOKEN_URL, body={"ok": False, "error": "invalid_code"})

        response = handle_oauth_exchange(post("oauth-exchange", {"code": "c", "state": state}))

        assert response.status_code == 502


class TestOAuthCallback:

    def test_callback_completes_flow_and_renders_success(self, runtime, http, db_session):
        """Initiate, then the provider redirect finishes the connect without a bearer token."""
        started = body_of(handle_oauth_initiate(post("oauth-initiate", {"service_name": "slack"})))
        state = parse_qs(urlparse(started["auth_url"]).query)["state"][0]
        http.queue("POST", SLACK_TOKEN_URL, body={"ok": True, "access_token": "xoxb-cb"})
        http.queue("POST", CREDENTIALS_URL, body={"id": "engine-cb"})

        response = handle_oauth_callback(
            get("oauth-callback", params={"code": "c", "state": state}, headers={})
        )

        page = page_of(response)
        assert response.status_code == 200
        assert response.mimetype == "text/html"
        assert "Slack connected" in page
        assert '"type": "oauth-success"' in page
        assert f'"{TEST_FRONTEND_URL}"' in page
        record = db_session.query(CredentialRecord).one()
        assert record.tenant_id == "tenant-123"
        assert record.mirror_credential_id == "engine-cb"

    def test_callback_replay_renders_error(self, runtime, http):
        state = OAuthStateFactory().state_token
        http.queue("POST", SLACK_TOKEN_URL, body={"ok": True, "access_token": "xoxb"})
        http.queue("POST", CREDENTIALS_URL, body={"id": "e"})
        params = {"code": "c", "state": state}
        handle_oauth_callback(get("oauth-callback", params=params, headers={}))

        response = handle_oauth_callback(get("oauth-callback", params=params, headers={}))

        assert response.status_code == 400
        assert "Invalid or expired state token" in page_of(response)
        assert '"type": "oauth-error"' in page_of(response)

    def test_provider_denial_is_400(self, runtime):
        response = handle_oauth_callback(
            get("oauth-callback", params={"error": "<b>access_denied</b>"}, headers={})
        )

        assert response.status_code == 400
        assert "OAuth denied: &lt;b&gt;access_denied&lt;/b&gt;" in page_of(response)
        assert "<\\/b>" in page_of(response)

    @pytest.mark.parametrize("params", [{}, {"code": "c"}, {"state": "s"}])
    def test_missing_parameters_is_400(self, runtime, params):
        response = handle_oauth_callback(get("oauth-callback", params=params, headers={}))

        assert response.status_code == 400
        assert "Missing code or state parameter" in page_of(response)


class TestCredentialEndpoints:

    def test_create_api_key_is_201(self, runtime, http, db_session):
        http.queue("POST", CREDENTIALS_URL, body={"id": "engine-oa"})

        response = handle_credentials_create(
            post("credentials-create", {"service_name": "openai", "api_key": "sk-user"})
        )

        assert response.status_code == 201
        payload = body_of(response)
        assert payload["success"] is True
        assert payload["credential"]["service_name"] == "openai"
        assert payload["credential"]["credential_type"] == "api_key"
        assert "sk-user" not in response.get_body().decode("utf-8")

    def test_create_with_platform_key(self, runtime, http):
        http.queue("POST", CREDENTIALS_URL, body={"id": "engine-oa"})

        response = handle_credentials_create(
            post("credentials-create", {"serviceName": "openai", "usePlatformKey": True})
        )

        assert response.status_code == 201

    def test_create_for_oauth_service_is_400(self, runtime):
        response = handle_credentials_create(
            post("credentials-create", {"service_name": "gmail", "api_key": "x"})
        )

        assert response.status_code == 400
        assert body_of(response)["error"] == "Use oauth-initiate for gmail"

    def test_disconnect(self, runtime, cipher):
        CredentialRecordFactory(cipher=cipher)

        response = handle_credentials_disconnect(
            post("credentials-disconnect", {"service_name": "slack"})
        )

        assert response.status_code == 200
        assert body_of(response)["credential"]["status"] == "disconnected"

    def test_disconnect_unknown_is_404(self, runtime):
        response = handle_credentials_disconnect(
            post("credentials-disconnect", {"service_name": "notion"})
        )

        assert response.status_code == 404

    def test_list_returns_only_caller_tenant_without_secrets(self, runtime, cipher):
        CredentialRecordFactory(cipher=cipher)
        CredentialRecordFactory(cipher=cipher, tenant_id="tenant-other", service_name="notion")

        response = handle_credentials_list(get("credentials-list"))

        credentials = body_of(response)["credentials"]
        assert [c["service_name"] for c in credentials] == ["slack"]
        assert "encrypted_tokens" not in credentials[0]
        assert "token_nonce" not in credentials[0]


class TestMaintenance:

    def test_cleanup_sweeps_expired_states_and_windows(self, runtime, db_session):
        ExpiredOAuthStateFactory()
        ExpiredOAuthStateFactory()
        OAuthStateFactory()
        db_session.add(
            RateLimitWindow(tenant_id="tenant-123", window_index=1, request_count=5)
        )
        db_session.commit()

        result = run_state_cleanup()

        assert result == {"expired_states": 2, "expired_rate_windows": 1}
        assert db_session.query(OAuthStateRecord).count() == 1
        assert db_session.query(RateLimitWindow).count() == 0

    def test_cleanup_with_nothing_to_do(self, runtime):
        assert run_state_cleanup() == {"expired_states": 0, "expired_rate_windows": 0}


def test_state_ttl_matches_config(runtime, db_session):
    handle_oauth_initiate(post("oauth-initiate", {"service_name": "hubspot"}))

    row = db_session.query(OAuthStateRecord).one()
    assert row.expires_at - row.created_at == timedelta(seconds=600)
    assert as_utc(row.expires_at) > utc_now()


def test_runtime_resolver_uses_configured_refresh_buffer(
    runtime, app_config, cipher, http, db_session
):
    app_config.oauth.refresh_buffer_seconds = 3600
    GoogleCredentialFactory(cipher=cipher, token_expires_at=utc_now() + timedelta(minutes=30))
    http.queue(
        "POST",
        "https://oauth2.googleapis.com/token",
        body={"access_token": "ya29.fresh", "expires_in": 3599},
    )

    resolver = runtime.resolver(db_session)

    assert resolver.buffer_seconds == 3600
    assert resolver.resolve("tenant-123", "gmail").access_token == "ya29.fresh"
