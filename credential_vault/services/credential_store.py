"""
Persistence for tenant credentials.

One row per (tenant, service). Rows are overwritten in place on reconnect
and refresh; disconnecting only changes the status.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import CredentialKind, CredentialStatus
from ..db.db_base import utc_now
from ..db.db_credential_models import CredentialRecord
from ..exceptions import (
    ErrorCode,
    RepositoryError,
    StaleCredentialWriteError,
    not_connected,
)
from ..schemas.credential_schemas import CredentialRead
from ..utils.logger import get_logger


class CredentialStore:
    """Tenant-scoped access to the credentials table."""

    def __init__(self, session: Session):
        self.session = session
        self.logger = get_logger()

    def _query(self, tenant_id: str, service_name: str):
        return self.session.query(CredentialRecord).filter(
            and_(
                CredentialRecord.tenant_id == tenant_id,
                CredentialRecord.service_name == service_name,
            )
        )

    def _db_error(self, operation: str, e: Exception, **context) -> RepositoryError:
        self.session.rollback()
        return RepositoryError(
            f"Credential {operation} failed: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            operation=operation,
            **context,
        )

    def upsert(
        self,
        tenant_id: str,
        service_name: str,
        kind: CredentialKind,
        encrypted_tokens: bytes,
        nonce: bytes,
        scopes: List[str],
        expires_at: Optional[datetime],
        mirror_id: Optional[str] = None,
    ) -> CredentialRead:
        """
        Create or overwrite the credential for (tenant, service).

        Safe to call repeatedly. The row is marked connected and its version
        bumped; an existing mirror id survives when mirror_id is None.
        """
        values = {
            "credential_type": CredentialKind(kind).value,
            "encrypted_tokens": encrypted_tokens,
            "token_nonce": nonce,
            "scopes": list(scopes),
            "token_expires_at": expires_at,
            "status": CredentialStatus.CONNECTED.value,
        }
        if mirror_id is not None:
            values["mirror_credential_id"] = mirror_id

        try:
            record = self._write(tenant_id, service_name, values)
        except IntegrityError:
            # Lost an insert race for the same (tenant, service); the row exists now
            self.session.rollback()
            try:
                record = self._write(tenant_id, service_name, values)
            except SQLAlchemyError as e:
                raise self._db_error(
                    "upsert", e, tenant_id=tenant_id, service_name=service_name
                ) from e
        except SQLAlchemyError as e:
            raise self._db_error("upsert", e, tenant_id=tenant_id, service_name=service_name) from e

        self.logger.info(
            "Credential stored",
            extra={
                "tenant_id": tenant_id,
                "service_name": service_name,
                "credential_type": values["credential_type"],
                "credential_id": record.id,
                "version": record.version,
            },
        )
        return CredentialRead.model_validate(record)

    def _write(self, tenant_id: str, service_name: str, values: dict) -> CredentialRecord:
        record = self._query(tenant_id, service_name).first()
        if record is None:
            record = CredentialRecord(
                tenant_id=tenant_id, service_name=service_name, version=1, **values
            )
            self.session.add(record)
        else:
            for key, value in values.items():
                setattr(record, key, value)
            record.version = record.version + 1
            record.updated_at = utc_now()
        self.session.commit()
        return record

    def find(self, tenant_id: str, service_name: str) -> Optional[CredentialRead]:
        """Return the row for (tenant, service) in any status, or None."""
        record = self._query(tenant_id, service_name).first()
        return CredentialRead.model_validate(record) if record else None

    def get(self, tenant_id: str, service_name: str) -> CredentialRead:
        """
        Return the connected credential for (tenant, service).

        Raises:
            NotConnectedError: If no row exists or its status is not connected
        """
        record = self._query(tenant_id, service_name).first()
        if record is None or record.status != CredentialStatus.CONNECTED.value:
            raise not_connected(tenant_id, service_name)
        return CredentialRead.model_validate(record)

    def update_tokens(
        self,
        credential_id: str,
        encrypted_tokens: bytes,
        nonce: bytes,
        expires_at: Optional[datetime],
        expected_version: int,
    ) -> int:
        """
        Replace the token blob if the row is still at expected_version.

        Returns:
            The new version

        Raises:
            StaleCredentialWriteError: If another writer got there first
        """
        try:
            result = self.session.execute(
                update(CredentialRecord)
                .where(
                    and_(
                        CredentialRecord.id == credential_id,
                        CredentialRecord.version == expected_version,
                    )
                )
                .values(
                    encrypted_tokens=encrypted_tokens,
                    token_nonce=nonce,
                    token_expires_at=expires_at,
                    version=expected_version + 1,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            raise self._db_error("update_tokens", e, credential_id=credential_id) from e

        if result.rowcount != 1:
            raise StaleCredentialWriteError(
                credential_id=credential_id, expected_version=expected_version
            )
        self.session.expire_all()
        return expected_version + 1

    def set_mirror_id(self, credential_id: str, mirror_id: str) -> None:
        try:
            self.session.execute(
                update(CredentialRecord)
                .where(CredentialRecord.id == credential_id)
                .values(mirror_credential_id=mirror_id)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as e:
            raise self._db_error("set_mirror_id", e, credential_id=credential_id) from e
        self.session.expire_all()

    def set_status(
        self, tenant_id: str, service_name: str, status: CredentialStatus
    ) -> CredentialRead:
        """
        Change a credential's status without touching its tokens.

        Raises:
            NotConnectedError: If the tenant never connected the service
        """
        record = self._query(tenant_id, service_name).first()
        if record is None:
            raise not_connected(tenant_id, service_name)

        try:
            record.status = CredentialStatus(status).value
            record.updated_at = utc_now()
            self.session.commit()
        except SQLAlchemyError as e:
            raise self._db_error(
                "set_status", e, tenant_id=tenant_id, service_name=service_name
            ) from e

        self.logger.info(
            "Credential status changed",
            extra={"tenant_id": tenant_id, "service_name": service_name, "status": record.status},
        )
        return CredentialRead.model_validate(record)

    def list_for_tenant(self, tenant_id: str) -> List[CredentialRead]:
        records = (
            self.session.query(CredentialRecord)
            .filter(CredentialRecord.tenant_id == tenant_id)
            .order_by(CredentialRecord.service_name)
            .all()
        )
        return [CredentialRead.model_validate(r) for r in records]
