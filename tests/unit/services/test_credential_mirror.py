"""Tests for the workflow engine credential mirror."""

import pytest
import requests

from credential_vault.exceptions import MirrorError
from credential_vault.services import ExternalCredentialMirror
from tests.conftest import TEST_MIRROR_URL

CREDENTIALS_URL = f"{TEST_MIRROR_URL}/credentials"


class TestExternalCredentialMirror:

    def test_credential_name_is_tenant_scoped(self):
        assert ExternalCredentialMirror.credential_name("t1", "gmail") == "tenant_t1_gmail"

    def test_create_posts_name_type_and_data(self, mirror, http):
        """create sends the engine API key header and returns the new id as a string."""
        http.queue("POST", CREDENTIALS_URL, body={"id": 17, "name": "tenant_t1_slack"})

        external_id = mirror.create("tenant_t1_slack", "slackOAuth2Api", {"accessToken": "xoxb"})

        assert external_id == "17"
        sent = http.calls[0]
        assert sent["headers"]["X-N8N-API-KEY"] == "engine-key"
        assert sent["json"] == {
            "name": "tenant_t1_slack",
            "type": "slackOAuth2Api",
            "data": {"accessToken": "xoxb"},
        }

    def test_update_patches_existing_credential(self, mirror, http):
        http.queue("PATCH", f"{CREDENTIALS_URL}/abc", body={"id": "abc"})

        mirror.update("abc", "tenant_t1_slack", "slackOAuth2Api", {"accessToken": "new"})

        assert http.calls[0]["method"] == "PATCH"
        assert http.calls[0]["json"]["data"] == {"accessToken": "new"}

    def test_create_rejection_raises_mirror_error(self, mirror, http):
        http.queue("POST", CREDENTIALS_URL, status_code=400, text="bad credential type")

        with pytest.raises(MirrorError) as exc_info:
            mirror.create("n", "nopeApi", {})
        assert exc_info.value.http_status == 400

    def test_sync_creates_when_no_existing_id(self, mirror, http):
        http.queue("POST", CREDENTIALS_URL, body={"id": "new-1"})

        assert mirror.sync("t1", "openai", "openAiApi", {"apiKey": "sk"}) == "new-1"
        assert http.calls[0]["json"]["name"] == "tenant_t1_openai"

    def test_sync_updates_when_existing_id(self, mirror, http):
        http.queue("PATCH", f"{CREDENTIALS_URL}/old-1", body={"id": "old-1"})

        result = mirror.sync("t1", "openai", "openAiApi", {"apiKey": "sk"}, existing_id="old-1")

        assert result == "old-1"
        assert len(http.calls_to(CREDENTIALS_URL, "POST")) == 0

    def test_sync_swallows_engine_rejection(self, mirror, http):
        """A rejected sync is logged and returns the previous id instead of raising."""
        http.queue("POST", CREDENTIALS_URL, status_code=500, text="boom")

        assert mirror.sync("t1", "slack", "slackOAuth2Api", {"accessToken": "x"}) is None

    def test_sync_swallows_unreachable_engine(self, mirror, http):
        http.queue("PATCH", f"{CREDENTIALS_URL}/keep", error=requests.ConnectionError("refused"))

        result = mirror.sync(
            "t1", "slack", "slackOAuth2Api", {"accessToken": "x"}, existing_id="keep"
        )
        assert result == "keep"

    def test_sync_skipped_when_disabled(self, http):
        mirror = ExternalCredentialMirror(TEST_MIRROR_URL, api_key=None, http=http)

        assert not mirror.enabled
        assert mirror.sync("t1", "slack", "slackOAuth2Api", {}) is None
        assert http.calls == []

    def test_sync_skipped_without_credential_type(self, mirror, http):
        assert mirror.sync("t1", "custom", None, {}, existing_id="x") == "x"
        assert http.calls == []
