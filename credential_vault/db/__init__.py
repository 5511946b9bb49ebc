"""
SQLAlchemy models and database setup for the credential vault.
"""

from .db_base import (
    JSON,
    HexBinary,
    TimestampMixin,
    UUIDMixin,
    as_utc,
    bytes_to_hex,
    hex_to_bytes,
    utc_now,
)
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_credential_models import CredentialRecord
from .db_oauth_state_models import OAuthStateRecord
from .db_rate_limit_models import RateLimitWindow

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "HexBinary",
    "TimestampMixin",
    "UUIDMixin",
    "as_utc",
    "bytes_to_hex",
    "hex_to_bytes",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "CredentialRecord",
    "OAuthStateRecord",
    "RateLimitWindow",
]
