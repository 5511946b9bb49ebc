"""
Credential Vault Azure Functions App

Routes:
    POST /api/oauth-initiate          start an OAuth connect, returns the authorize URL
    POST /api/oauth-exchange          finish a connect from the frontend with {code, state}
    GET  /api/oauth-callback          provider redirect target, renders a confirmation page
    POST /api/credentials-create      store an API key or opt into a platform key
    POST /api/credentials-disconnect  mark a credential disconnected
    GET  /api/credentials-list        list the tenant's credentials (no secrets)

Timer:
    oauth-state-cleanup (every 15 minutes) removes expired OAuth states and
    stale rate-limit windows.

Run with: func start
"""

import azure.functions as func
from dotenv import load_dotenv

load_dotenv()

from credential_vault.api import (  # noqa: E402
    get_runtime,
    handle_credentials_create,
    handle_credentials_disconnect,
    handle_credentials_list,
    handle_oauth_callback,
    handle_oauth_exchange,
    handle_oauth_initiate,
    run_state_cleanup,
)
from credential_vault.db.db_config import initialize_db  # noqa: E402
from credential_vault.utils.logger import configure_logging  # noqa: E402

app = func.FunctionApp()

logger = configure_logging("credential_vault")
initialize_db()

# Fail at startup on missing or malformed CREDENTIAL_ENCRYPTION_KEY
get_runtime()


@app.function_name(name="OAuthInitiate")
@app.route(route="oauth-initiate", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def oauth_initiate(req: func.HttpRequest) -> func.HttpResponse:
    return handle_oauth_initiate(req)


@app.function_name(name="OAuthExchange")
@app.route(route="oauth-exchange", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def oauth_exchange(req: func.HttpRequest) -> func.HttpResponse:
    return handle_oauth_exchange(req)


@app.function_name(name="OAuthCallback")
@app.route(route="oauth-callback", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def oauth_callback(req: func.HttpRequest) -> func.HttpResponse:
    return handle_oauth_callback(req)


@app.function_name(name="CredentialsCreate")
@app.route(
    route="credentials-create", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS
)
def credentials_create(req: func.HttpRequest) -> func.HttpResponse:
    return handle_credentials_create(req)


@app.function_name(name="CredentialsDisconnect")
@app.route(
    route="credentials-disconnect", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS
)
def credentials_disconnect(req: func.HttpRequest) -> func.HttpResponse:
    return handle_credentials_disconnect(req)


@app.function_name(name="CredentialsList")
@app.route(route="credentials-list", methods=["GET", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def credentials_list(req: func.HttpRequest) -> func.HttpResponse:
    return handle_credentials_list(req)


@app.function_name(name="OAuthStateCleanup")
@app.timer_trigger(arg_name="timer", schedule="0 */15 * * * *", run_on_startup=False)
def oauth_state_cleanup(timer: func.TimerRequest) -> None:
    if timer.past_due:
        logger.warning("OAuth state cleanup timer is past due")
    run_state_cleanup()
