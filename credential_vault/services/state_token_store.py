"""
Anti-replay state tokens for OAuth redirects.

A state token is issued when a flow starts and consumed exactly once when
the provider redirects back. Consumption deletes the row; only the caller
whose DELETE removed it may proceed.
"""

import secrets
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import Limits, Timeouts
from ..db.db_base import as_utc, utc_now
from ..db.db_oauth_state_models import OAuthStateRecord
from ..exceptions import ErrorCode, RepositoryError, StateExpiredError, StateNotFoundError
from ..schemas.credential_schemas import OAuthStateRead
from ..utils.logger import get_logger


class StateTokenStore:
    """Issues and single-use-consumes OAuth state tokens."""

    def __init__(self, session: Session, default_ttl_seconds: int = Timeouts.OAUTH_STATE_TTL):
        self.session = session
        self.default_ttl_seconds = default_ttl_seconds
        self.logger = get_logger()

    @staticmethod
    def generate_token() -> str:
        """256 bits from the OS CSPRNG, hex encoded."""
        return secrets.token_hex(Limits.STATE_TOKEN_BYTES)

    def issue(
        self,
        tenant_id: str,
        user_id: str,
        service_name: str,
        redirect_uri: str,
        scopes: List[str],
        ttl_seconds: Optional[int] = None,
    ) -> str:
        """
        Persist a new state row and return its token.

        Args:
            tenant_id: Tenant starting the flow
            user_id: User starting the flow
            service_name: Service being connected
            redirect_uri: Redirect URI sent to the provider
            scopes: Scopes requested
            ttl_seconds: Lifetime; defaults to the store's TTL

        Returns:
            The opaque state token
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        now = utc_now()
        token = self.generate_token()

        record = OAuthStateRecord(
            state_token=token,
            tenant_id=tenant_id,
            user_id=user_id,
            service_name=service_name,
            redirect_uri=redirect_uri,
            scopes=list(scopes),
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        try:
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(
                "Failed to persist OAuth state",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                tenant_id=tenant_id,
                service_name=service_name,
            ) from e

        self.logger.info(
            "OAuth state issued",
            extra={
                "tenant_id": tenant_id,
                "service_name": service_name,
                "ttl_seconds": ttl,
            },
        )
        return token

    def consume(self, state_token: str) -> OAuthStateRead:
        """
        Validate and delete a state token in one step.

        Expired rows are deleted too, so a token is never usable twice.
        A sweep of all expired rows follows every call.

        Raises:
            StateNotFoundError: Unknown or already consumed token
            StateExpiredError: Token found but past its expiry
        """
        try:
            return self._consume(state_token)
        finally:
            self.sweep_expired()

    def _find(self, state_token: str) -> Optional[OAuthStateRecord]:
        return (
            self.session.query(OAuthStateRecord)
            .filter(OAuthStateRecord.state_token == state_token)
            .first()
        )

    def _delete(self, record: OAuthStateRecord, snapshot: OAuthStateRead) -> int:
        try:
            result = self.session.execute(
                delete(OAuthStateRecord)
                .where(OAuthStateRecord.id == record.id)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(
                "Failed to consume OAuth state",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                tenant_id=snapshot.tenant_id,
                service_name=snapshot.service_name,
            ) from e
        finally:
            self.session.expunge(record)
        return result.rowcount

    def _consume(self, state_token: str) -> OAuthStateRead:
        record = self._find(state_token)
        if record is None:
            raise StateNotFoundError()

        snapshot = OAuthStateRead.model_validate(record)

        # The conditional delete is the mutual-exclusion point: only one caller sees rowcount 1
        if self._delete(record, snapshot) != 1:
            self.logger.warning(
                "OAuth state consumed concurrently",
                extra={"service_name": snapshot.service_name, "tenant_id": snapshot.tenant_id},
            )
            raise StateNotFoundError()

        if as_utc(snapshot.expires_at) <= utc_now():
            raise StateExpiredError(
                tenant_id=snapshot.tenant_id, service_name=snapshot.service_name
            )

        self.logger.info(
            "OAuth state consumed",
            extra={"tenant_id": snapshot.tenant_id, "service_name": snapshot.service_name},
        )
        return snapshot

    def sweep_expired(self) -> int:
        """
        Delete every expired state row. Storage hygiene only.

        Returns:
            Number of rows removed
        """
        try:
            result = self.session.execute(
                delete(OAuthStateRecord)
                .where(OAuthStateRecord.expires_at <= utc_now())
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.warning("Expired OAuth state sweep failed", extra={"error": str(e)})
            return 0

        if result.rowcount:
            self.logger.info("Expired OAuth states removed", extra={"count": result.rowcount})
        return result.rowcount or 0
