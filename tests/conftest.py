"""
Test fixtures for the credential vault.

Provides an in-memory SQLite database, a fixed-key cipher, a deterministic
application config, and stubbed provider/engine HTTP.
"""

import pytest
from sqlalchemy.orm import Session

from credential_vault.config import (
    AppConfig,
    LoggingConfig,
    MirrorConfig,
    OAuthConfig,
    ProviderCredentialsConfig,
    QueueConfig,
    RateLimitConfig,
    SecurityConfig,
    reset_config,
    set_config,
)
from credential_vault.db import DatabaseConfig, DatabaseManager, import_all_models
from credential_vault.db.db_config import Base, initialize_db, set_db_manager
from credential_vault.providers import build_default_registry
from credential_vault.services import ExternalCredentialMirror
from credential_vault.utils.encryption_utils import TokenCipher
from credential_vault.utils.logger import reset_logging
from tests.fixtures.factories import bind_factories
from tests.fixtures.http_stubs import StubHttpSession

TEST_ENCRYPTION_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
TEST_AUTH_SECRET = "test-auth-secret"
TEST_FRONTEND_URL = "https://app.example.test"
TEST_MIRROR_URL = "https://engine.example.test/api/v1"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep tests away from real queues and any developer .env settings."""
    monkeypatch.setenv("AzureWebJobsStorage", "")
    monkeypatch.setenv("ENABLE_QUEUE_LOGS", "false")
    reset_config()
    reset_logging()
    yield
    reset_config()
    reset_logging()


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(db_type="sqlite", database=":memory:", echo=False)


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize the global database manager with all models."""
    import_all_models()
    manager = initialize_db(db_config)
    yield manager
    set_db_manager(None)
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so each test
    starts from an empty schema.
    """
    set_db_manager(db_manager)
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()
    bind_factories(session)

    yield session

    session.rollback()
    db_manager.close_session(session)
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture
def app_config() -> AppConfig:
    """Deterministic configuration installed as the global config."""
    config = AppConfig(
        debug=False,
        queue=QueueConfig(connection_string=""),
        logging=LoggingConfig(level="DEBUG", enable_queue_logs=False),
        security=SecurityConfig(
            encryption_key=TEST_ENCRYPTION_KEY, auth_token_secret=TEST_AUTH_SECRET
        ),
        oauth=OAuthConfig(
            frontend_url=TEST_FRONTEND_URL, state_ttl_seconds=600, refresh_buffer_seconds=300
        ),
        providers=ProviderCredentialsConfig(
            google_client_id="google-client",
            google_client_secret="google-secret",
            slack_client_id="slack-client",
            slack_client_secret="slack-secret",
            notion_client_id="notion-client",
            notion_client_secret="notion-secret",
            hubspot_client_id="hubspot-client",
            hubspot_client_secret="hubspot-secret",
            stripe_client_id="ca_stripe",
            stripe_secret_key="sk_test_stripe",
            openai_api_key="sk-platform-openai",
            anthropic_api_key=None,
        ),
        mirror=MirrorConfig(api_key="engine-key", base_url=TEST_MIRROR_URL),
        rate_limit=RateLimitConfig(enabled=True, max_requests=100, window_seconds=60),
    )
    set_config(config)
    return config


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher.from_hex(TEST_ENCRYPTION_KEY)


@pytest.fixture
def http() -> StubHttpSession:
    """Recording stand-in for requests.Session shared by adapters and the mirror."""
    return StubHttpSession()


@pytest.fixture
def registry(app_config, http):
    return build_default_registry(app_config, http)


@pytest.fixture
def mirror(app_config, http) -> ExternalCredentialMirror:
    return ExternalCredentialMirror.from_config(app_config, http)


@pytest.fixture
def sample_tenant_id() -> str:
    """Standard tenant ID for testing."""
    return "tenant-123"


@pytest.fixture
def sample_user_id() -> str:
    return "user-456"
