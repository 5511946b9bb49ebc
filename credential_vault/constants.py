"""
Constants and enums for the credential vault.

This module centralizes all magic strings and constants used throughout
the vault to ensure consistency and maintainability.
"""

from enum import Enum


class ServiceName(str, Enum):
    """Third-party services a tenant can connect."""

    GOOGLE = "google"
    GMAIL = "gmail"
    GOOGLE_SHEETS = "google_sheets"
    GOOGLE_DRIVE = "google_drive"
    SLACK = "slack"
    NOTION = "notion"
    HUBSPOT = "hubspot"
    STRIPE = "stripe"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    SUPABASE = "supabase"


class CredentialKind(str, Enum):
    """How a credential was obtained."""

    API_KEY = "api_key"
    OAUTH2 = "oauth2"


class CredentialStatus(str, Enum):
    """Connection status of a stored credential."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class AuthStyle(str, Enum):
    """How client credentials are presented to a token endpoint."""

    FORM_BODY = "form_body"
    HTTP_BASIC = "http_basic"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    LOG_LEVEL = "LOG_LEVEL"
    ENABLE_QUEUE_LOGS = "ENABLE_QUEUE_LOGS"
    DEBUG = "DEBUG"

    CREDENTIAL_ENCRYPTION_KEY = "CREDENTIAL_ENCRYPTION_KEY"
    AUTH_TOKEN_SECRET = "AUTH_TOKEN_SECRET"
    FRONTEND_URL = "FRONTEND_URL"
    OAUTH_STATE_TTL_SECONDS = "OAUTH_STATE_TTL_SECONDS"
    TOKEN_REFRESH_BUFFER_SECONDS = "TOKEN_REFRESH_BUFFER_SECONDS"

    GOOGLE_CLIENT_ID = "GOOGLE_CLIENT_ID"
    GOOGLE_CLIENT_SECRET = "GOOGLE_CLIENT_SECRET"
    SLACK_CLIENT_ID = "SLACK_CLIENT_ID"
    SLACK_CLIENT_SECRET = "SLACK_CLIENT_SECRET"
    NOTION_CLIENT_ID = "NOTION_CLIENT_ID"
    NOTION_CLIENT_SECRET = "NOTION_CLIENT_SECRET"
    HUBSPOT_CLIENT_ID = "HUBSPOT_CLIENT_ID"
    HUBSPOT_CLIENT_SECRET = "HUBSPOT_CLIENT_SECRET"
    STRIPE_CONNECT_CLIENT_ID = "STRIPE_CONNECT_CLIENT_ID"
    STRIPE_SECRET_KEY = "STRIPE_SECRET_KEY"
    OPENAI_API_KEY = "OPENAI_API_KEY"
    ANTHROPIC_API_KEY = "ANTHROPIC_API_KEY"

    N8N_API_KEY = "N8N_API_KEY"
    N8N_BASE_URL = "N8N_BASE_URL"

    RATE_LIMIT_MAX_REQUESTS = "RATE_LIMIT_MAX_REQUESTS"
    RATE_LIMIT_WINDOW_SECONDS = "RATE_LIMIT_WINDOW_SECONDS"


# Logical services sharing a single Google token set
GOOGLE_SERVICES = (
    ServiceName.GMAIL.value,
    ServiceName.GOOGLE_SHEETS.value,
    ServiceName.GOOGLE_DRIVE.value,
)

# Credential type names expected by the workflow engine
MIRROR_CREDENTIAL_TYPES = {
    ServiceName.GMAIL.value: "googleOAuth2Api",
    ServiceName.GOOGLE_SHEETS.value: "googleSheetsOAuth2Api",
    ServiceName.GOOGLE_DRIVE.value: "googleDriveOAuth2Api",
    ServiceName.SLACK.value: "slackOAuth2Api",
    ServiceName.OPENAI.value: "openAiApi",
    ServiceName.ANTHROPIC.value: "anthropicApi",
    ServiceName.NOTION.value: "notionOAuth2Api",
    ServiceName.HUBSPOT.value: "hubspotOAuth2Api",
    ServiceName.STRIPE.value: "stripeApi",
    ServiceName.SUPABASE.value: "supabaseApi",
}

# Human-readable provider names for confirmation pages
DISPLAY_NAMES = {
    ServiceName.GOOGLE.value: "Google",
    ServiceName.GMAIL.value: "Google",
    ServiceName.GOOGLE_SHEETS.value: "Google",
    ServiceName.GOOGLE_DRIVE.value: "Google",
    ServiceName.SLACK.value: "Slack",
    ServiceName.NOTION.value: "Notion",
    ServiceName.HUBSPOT.value: "HubSpot",
    ServiceName.STRIPE.value: "Stripe",
}

# Keys whose values must never reach a log sink
SENSITIVE_LOG_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "api_key",
        "apiKey",
        "client_secret",
        "clientSecret",
        "code",
        "authorization",
        "password",
        "secret",
    }
)


class Limits:
    """Size limits for generated secrets."""

    ENCRYPTION_KEY_BYTES = 32
    NONCE_BYTES = 12
    STATE_TOKEN_BYTES = 32


class Timeouts:
    """Timeout values in seconds."""

    HTTP_REQUEST = 30
    OAUTH_STATE_TTL = 600
    TOKEN_REFRESH_BUFFER = 300
    DEFAULT_TOKEN_LIFETIME = 3600
    AUTH_TOKEN_LIFETIME = 3600
