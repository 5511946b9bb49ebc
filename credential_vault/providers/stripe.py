"""
Stripe Connect adapter. The platform secret key authenticates the exchange.
"""

from ..constants import EnvironmentVariable, ServiceName
from ..schemas.credential_schemas import CanonicalTokenSet
from .base import ProviderAdapter, ProviderProfile


class StripeAdapter(ProviderAdapter):
    profile = ProviderProfile(
        name=ServiceName.STRIPE.value,
        display_name="Stripe",
        authorize_url="https://connect.stripe.com/oauth/authorize",
        token_url="https://connect.stripe.com/oauth/token",
        scopes=("read_write",),
        client_id_setting=EnvironmentVariable.STRIPE_CONNECT_CLIENT_ID.value,
        tokens_expire=False,
    )

    def exchange_code(self, code: str, redirect_uri: str) -> CanonicalTokenSet:
        # client_secret here is the platform's STRIPE_SECRET_KEY
        body = self._exchange(
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_secret": self.client_secret,
            }
        )
        return self._stamp(
            {
                "access_token": body.get("access_token") or body.get("stripe_user_id"),
                "refresh_token": body.get("refresh_token"),
                "stripe_user_id": body.get("stripe_user_id"),
                "stripe_publishable_key": body.get("stripe_publishable_key"),
                "token_type": body.get("token_type"),
            }
        )
