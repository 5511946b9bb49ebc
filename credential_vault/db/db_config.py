"""
Database engine and session management for the credential vault.

Production runs on Postgres through psycopg. Development and tests run on
SQLite; an in-memory database is pinned to a single shared connection so
every scoped session sees the same tables.
"""

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils.logger import get_logger

Base: Any = declarative_base()

SUPPORTED_BACKENDS = ("postgres", "sqlite")


class DatabaseConfig(BaseModel):
    """Connection settings for the vault tables."""

    model_config = ConfigDict(frozen=True)

    db_type: str = "postgres"
    database: str
    host: str = ""
    port: str = "5432"
    username: str = ""
    password: str = ""
    url: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.db_type.lower() == "sqlite"

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and self.database == ":memory:"

    def get_connection_string(self) -> str:
        if self.url:
            return self.url

        backend = self.db_type.lower()
        if backend not in SUPPORTED_BACKENDS:
            raise ValidationError(
                f"Unsupported database type: {self.db_type}",
                error_code=ErrorCode.INVALID_FORMAT,
                field="db_type",
                value=self.db_type,
            )
        if self.is_sqlite:
            return f"sqlite:///{self.database}"

        missing = [
            name
            for name in ("host", "database", "username", "password")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError(
                f"Missing Postgres settings: {', '.join(missing)}",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="database_config",
                value=missing,
            )
        return (
            f"postgresql+psycopg://{self.username}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}"
        )

    def engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``create_engine`` matching the backend."""
        if self.is_memory:
            return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
        if self.is_sqlite:
            return {"connect_args": {"check_same_thread": False}}
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_pre_ping": True,
        }

    def __repr__(self) -> str:
        return (
            f"DatabaseConfig(db_type='{self.db_type}', host='{self.host}', "
            f"database='{self.database}', password='***')"
        )


class DatabaseManager:
    """Owns the engine and the thread-scoped session registry."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine: Engine = create_engine(
            config.get_connection_string(), echo=config.echo, **config.engine_options()
        )
        self.scoped_session = scoped_session(sessionmaker(bind=self.engine))

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        return self.scoped_session()

    def close_session(self, session: Optional[Session] = None) -> None:
        """Close ``session`` and drop the thread's registry entry."""
        if session is not None:
            session.close()
        self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def get_development_config() -> DatabaseConfig:
    """SQLite settings; ``DEV_DB_PATH`` defaults to an in-memory database."""
    return DatabaseConfig(
        db_type="sqlite",
        database=os.environ.get("DEV_DB_PATH", ":memory:"),
        echo=os.environ.get("DB_ECHO", "false").lower() == "true",
    )


def get_production_config() -> DatabaseConfig:
    """Postgres settings from ``DATABASE_URL`` or the individual ``DB_*`` variables."""
    return DatabaseConfig(
        db_type="postgres",
        url=os.environ.get("DATABASE_URL") or None,
        host=os.environ.get("DB_HOST", "localhost"),
        port=os.environ.get("DB_PORT", "5432"),
        database=os.environ.get("DB_NAME", "credential_vault"),
        username=os.environ.get("DB_USER", "postgres"),
        password=os.environ.get("DB_PASSWORD", ""),
        pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
        max_overflow=int(os.environ.get("DB_MAX_OVERFLOW", "10")),
        pool_timeout=int(os.environ.get("DB_POOL_TIMEOUT", "30")),
        echo=os.environ.get("DB_ECHO", "false").lower() == "true",
    )


def get_config_from_env() -> DatabaseConfig:
    """Postgres when any production connection setting is present, SQLite otherwise."""
    if os.environ.get("DATABASE_URL") or os.environ.get("DB_HOST"):
        return get_production_config()
    return get_development_config()


def import_all_models() -> None:
    """Register every vault table on ``Base.metadata``."""
    from sqlalchemy.orm import configure_mappers

    from .db_credential_models import CredentialRecord  # noqa
    from .db_oauth_state_models import OAuthStateRecord  # noqa
    from .db_rate_limit_models import RateLimitWindow  # noqa

    configure_mappers()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    if _db_manager is None:
        raise ServiceError(
            "Database manager not initialized. Call initialize_db() first.",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """Install ``manager`` as the process-wide manager; tests pass their own."""
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Create the global manager and make sure the vault tables exist.

    Args:
        config: Connection settings. Derived from the environment when omitted.

    Returns:
        The installed DatabaseManager
    """
    config = config or get_config_from_env()
    manager = DatabaseManager(config)
    import_all_models()
    manager.create_tables()
    get_logger().info(
        "Vault database initialized",
        extra={"db_type": config.db_type, "database": config.database},
    )
    set_db_manager(manager)
    return manager
