"""HTTP handlers bound to routes by function_app.py."""

from .http_handlers import (
    VaultRuntime,
    get_runtime,
    handle_credentials_create,
    handle_credentials_disconnect,
    handle_credentials_list,
    handle_oauth_callback,
    handle_oauth_exchange,
    handle_oauth_initiate,
    run_state_cleanup,
    set_runtime,
)

__all__ = [
    "VaultRuntime",
    "get_runtime",
    "set_runtime",
    "handle_oauth_initiate",
    "handle_oauth_exchange",
    "handle_oauth_callback",
    "handle_credentials_create",
    "handle_credentials_disconnect",
    "handle_credentials_list",
    "run_state_cleanup",
]
