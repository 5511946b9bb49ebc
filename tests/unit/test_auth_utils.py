"""Tests for bearer token issue and verification."""

import pytest

from credential_vault.exceptions import AuthError, ConfigError
from credential_vault.utils.auth_utils import (
    _b64encode,
    _sign,
    authenticate_request,
    issue_access_token,
    verify_access_token,
)

SECRET = "unit-secret"


class TestAccessTokens:

    def test_round_trip(self):
        token = issue_access_token("user-1", "tenant-1", SECRET)

        auth = verify_access_token(token, SECRET)

        assert auth.user_id == "user-1"
        assert auth.tenant_id == "tenant-1"

    def test_wrong_secret_is_rejected(self):
        token = issue_access_token("user-1", "tenant-1", SECRET)

        with pytest.raises(AuthError) as exc_info:
            verify_access_token(token, "other-secret")
        assert exc_info.value.status_code == 401

    def test_tampered_payload_is_rejected(self):
        """Swapping the tenant in the payload breaks the signature."""
        token = issue_access_token("user-1", "tenant-1", SECRET)
        forged_payload = _b64encode(b'{"sub":"user-1","tenant_id":"tenant-2","exp":9999999999}')
        signature = token.split(".")[1]

        with pytest.raises(AuthError):
            verify_access_token(f"{forged_payload}.{signature}", SECRET)

    def test_expired_token_is_rejected(self):
        token = issue_access_token("user-1", "tenant-1", SECRET, expires_in=-10)

        with pytest.raises(AuthError) as exc_info:
            verify_access_token(token, SECRET)
        assert "expired" in str(exc_info.value)

    @pytest.mark.parametrize("token", ["", "no-dot", "a.b.c"])
    def test_malformed_token_is_rejected(self, token):
        with pytest.raises(AuthError):
            verify_access_token(token, SECRET)

    @pytest.mark.parametrize("token", ["abc.éé", "ünï.sig", "payload.sïg"])
    def test_non_ascii_token_is_malformed(self, token):
        with pytest.raises(AuthError) as exc_info:
            verify_access_token(token, SECRET)

        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Malformed access token"

    def test_signed_claims_without_tenant_are_rejected(self):
        payload = _b64encode(b'{"sub":"user-1","exp":9999999999}')

        with pytest.raises(AuthError) as exc_info:
            verify_access_token(f"{payload}.{_sign(payload, SECRET)}", SECRET)
        assert "no tenant" in str(exc_info.value)

    def test_signed_non_numeric_expiry_is_rejected(self):
        payload = _b64encode(b'{"sub":"u","tenant_id":"t","exp":"never"}')

        with pytest.raises(AuthError):
            verify_access_token(f"{payload}.{_sign(payload, SECRET)}", SECRET)


class TestAuthenticateRequest:

    def test_bearer_header(self):
        token = issue_access_token("user-1", "tenant-1", SECRET)

        auth = authenticate_request({"Authorization": f"Bearer {token}"}, secret=SECRET)

        assert auth.tenant_id == "tenant-1"

    def test_lowercase_header_and_scheme(self):
        token = issue_access_token("user-1", "tenant-1", SECRET)

        auth = authenticate_request({"authorization": f"bearer {token}"}, secret=SECRET)

        assert auth.user_id == "user-1"

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}])
    def test_missing_bearer_is_rejected(self, headers):
        with pytest.raises(AuthError) as exc_info:
            authenticate_request(headers, secret=SECRET)
        assert str(exc_info.value) == "Missing authorization header"

    def test_secret_from_config(self, app_config):
        token = issue_access_token("user-1", "tenant-1", app_config.security.auth_token_secret)

        assert authenticate_request({"Authorization": f"Bearer {token}"}).tenant_id == "tenant-1"

    def test_unconfigured_secret_is_config_error(self, monkeypatch):
        monkeypatch.delenv("AUTH_TOKEN_SECRET", raising=False)

        with pytest.raises(ConfigError):
            authenticate_request({"Authorization": "Bearer x.y"})
