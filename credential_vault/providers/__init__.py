"""Provider adapters for the OAuth services the vault can connect."""

from .api_key import ApiKeyAdapter
from .base import ProviderAdapter, ProviderProfile
from .google import GoogleAdapter
from .hubspot import HubSpotAdapter
from .notion import NotionAdapter
from .registry import ProviderRegistry, build_default_registry
from .slack import SlackAdapter
from .stripe import StripeAdapter

__all__ = [
    "ApiKeyAdapter",
    "GoogleAdapter",
    "HubSpotAdapter",
    "NotionAdapter",
    "ProviderAdapter",
    "ProviderProfile",
    "ProviderRegistry",
    "SlackAdapter",
    "StripeAdapter",
    "build_default_registry",
]
