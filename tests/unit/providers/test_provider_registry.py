"""Tests for the provider registry."""

import pytest

from credential_vault.exceptions import UnsupportedServiceError
from credential_vault.providers import GoogleAdapter, ProviderRegistry, SlackAdapter


class TestProviderRegistry:

    def test_google_services_share_one_adapter(self, registry):
        """gmail, google_sheets and google_drive resolve to the Google adapter."""
        adapters = {registry.get(name) for name in ("google", "gmail", "google_sheets", "google_drive")}
        assert len(adapters) == 1
        assert isinstance(adapters.pop(), GoogleAdapter)

    def test_default_registry_uses_configured_client_ids(self, registry):
        assert registry.get("slack").client_id == "slack-client"
        assert registry.get("stripe").client_secret == "sk_test_stripe"

    def test_unknown_service_is_unsupported(self, registry):
        with pytest.raises(UnsupportedServiceError) as exc_info:
            registry.get("myspace")
        assert str(exc_info.value) == "Unsupported service: myspace"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("service_name", ["openai", "anthropic", "supabase", "myspace"])
    def test_get_oauth_rejects_non_oauth_services(self, registry, service_name):
        with pytest.raises(UnsupportedServiceError) as exc_info:
            registry.get_oauth(service_name)
        assert f"OAuth not supported for {service_name}" in str(exc_info.value)

    def test_is_oauth(self, registry):
        assert registry.is_oauth("gmail")
        assert registry.is_oauth("notion")
        assert not registry.is_oauth("openai")
        assert not registry.is_oauth("unknown")

    def test_register_with_aliases(self, http):
        registry = ProviderRegistry()
        adapter = SlackAdapter("c", "s", http)
        registry.register(adapter, "slack_bot")

        assert registry.get("slack_bot") is adapter
        assert registry.service_names() == ["slack", "slack_bot"]
