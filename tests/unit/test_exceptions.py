"""Tests for the vault exception hierarchy."""

import pytest

from credential_vault.exceptions import (
    BaseError,
    ErrorCode,
    ExchangeError,
    NoRefreshTokenError,
    NoStoredTokensError,
    RefreshFailedError,
    StateExpiredError,
    StateInvalidOrExpiredError,
    StateNotFoundError,
    clear_correlation_id,
    not_connected,
    set_correlation_id,
)


class TestErrorStatus:

    @pytest.mark.parametrize(
        "error, status, code",
        [
            (not_connected("t", "slack"), 404, ErrorCode.NOT_CONNECTED),
            (NoStoredTokensError(), 409, ErrorCode.RECONNECT_REQUIRED),
            (NoRefreshTokenError(), 409, ErrorCode.RECONNECT_REQUIRED),
            (StateExpiredError(), 400, ErrorCode.EXPIRED),
            (RefreshFailedError("refused", service="google"), 503, ErrorCode.REFRESH_FAILED),
            (ExchangeError("rejected", provider="slack", http_status=400), 502, ErrorCode.EXCHANGE_FAILED),
        ],
    )
    def test_status_and_code(self, error, status, code):
        assert error.status_code == status
        assert error.error_code == code

    def test_state_errors_share_a_base_and_carry_reason(self):
        """Callers catch one type; the reason distinguishes expired from unknown."""
        for error, reason in ((StateNotFoundError(), "not_found"), (StateExpiredError(), "expired")):
            assert isinstance(error, StateInvalidOrExpiredError)
            assert error.reason == reason
            assert error.context["reason"] == reason

    def test_not_connected_message(self):
        error = not_connected("tenant-1", "notion")
        assert str(error) == "notion is not connected"
        assert error.context["tenant_id"] == "tenant-1"


class TestBaseError:

    def test_to_dict_is_the_response_body(self):
        cause = ValueError("boom")
        error = BaseError("failed", cause=cause, operation="x")

        payload = error.to_dict()

        assert payload == {
            "error": "failed",
            "code": ErrorCode.INTERNAL_ERROR.value,
            "error_id": error.error_id,
        }
        assert error.to_dict(include_cause=True)["cause"] == {"type": "ValueError", "message": "boom"}

    def test_correlation_id_is_attached(self):
        set_correlation_id("req-1")
        try:
            error = BaseError("failed")
        finally:
            clear_correlation_id()

        assert error.context["correlation_id"] == "req-1"
        assert error.to_dict()["correlation_id"] == "req-1"
