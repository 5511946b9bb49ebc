"""
One-way projection of vault credentials into the workflow engine.

The engine keeps its own credential objects so deployed workflow nodes can
authenticate directly. The vault's rows stay the source of truth. A sync
that fails is logged and dropped; it is retried the next time a workflow
for that tenant/service is deployed.
"""

from typing import Any, Dict, Optional

import requests

from ..config import AppConfig, get_config
from ..constants import Timeouts
from ..exceptions import MirrorError
from ..utils.logger import get_logger


class ExternalCredentialMirror:
    """Client for the workflow engine's credential REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        http: Optional[requests.Session] = None,
        timeout: int = Timeouts.HTTP_REQUEST,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.http = http or requests.Session()
        self.timeout = timeout
        self.logger = get_logger()

    @classmethod
    def from_config(
        cls, config: Optional[AppConfig] = None, http: Optional[requests.Session] = None
    ) -> "ExternalCredentialMirror":
        config = config or get_config()
        return cls(
            base_url=config.mirror.base_url,
            api_key=config.mirror.api_key,
            http=http,
            timeout=config.oauth.http_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def credential_name(tenant_id: str, service_name: str) -> str:
        return f"tenant_{tenant_id}_{service_name}"

    def _headers(self) -> Dict[str, str]:
        return {"X-N8N-API-KEY": self.api_key or "", "Content-Type": "application/json"}

    def _send(self, method: str, url: str, payload: Dict[str, Any]) -> requests.Response:
        try:
            response = self.http.request(
                method, url, json=payload, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise MirrorError(f"Workflow engine unreachable: {e}", cause=e) from e

        if not response.ok:
            raise MirrorError(
                f"Workflow engine rejected credential {method}: {response.text}",
                http_status=response.status_code,
            )
        return response

    def create(self, name: str, credential_type: str, data: Dict[str, Any]) -> str:
        """
        Create a credential in the engine.

        Returns:
            The engine's id for the new credential

        Raises:
            MirrorError: If the engine is unreachable or rejects the call
        """
        response = self._send(
            "POST",
            f"{self.base_url}/credentials",
            {"name": name, "type": credential_type, "data": data},
        )
        try:
            external_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise MirrorError("Workflow engine response has no credential id", cause=e) from e
        return str(external_id)

    def update(self, external_id: str, name: str, credential_type: str, data: Dict[str, Any]) -> None:
        """
        Overwrite an existing engine credential.

        Raises:
            MirrorError: If the engine is unreachable or rejects the call
        """
        self._send(
            "PATCH",
            f"{self.base_url}/credentials/{external_id}",
            {"name": name, "type": credential_type, "data": data},
        )

    def sync(
        self,
        tenant_id: str,
        service_name: str,
        credential_type: Optional[str],
        data: Dict[str, Any],
        existing_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Best-effort create-or-update. Never raises for engine failures.

        Returns:
            The engine credential id after the sync, or existing_id when the
            sync was skipped or failed
        """
        if not self.enabled:
            self.logger.debug(
                "Credential mirror disabled, skipping sync",
                extra={"tenant_id": tenant_id, "service_name": service_name},
            )
            return existing_id
        if not credential_type:
            self.logger.debug(
                "No workflow engine credential type for service",
                extra={"tenant_id": tenant_id, "service_name": service_name},
            )
            return existing_id

        name = self.credential_name(tenant_id, service_name)
        try:
            if existing_id:
                self.update(existing_id, name, credential_type, data)
                external_id = existing_id
            else:
                external_id = self.create(name, credential_type, data)
        except MirrorError as e:
            self.logger.warning(
                "Credential mirror sync failed, continuing without it",
                extra={
                    "tenant_id": tenant_id,
                    "service_name": service_name,
                    "error_id": e.error_id,
                    "http_status": e.http_status,
                },
            )
            return existing_id

        self.logger.info(
            "Credential mirrored to workflow engine",
            extra={
                "tenant_id": tenant_id,
                "service_name": service_name,
                "mirror_credential_id": external_id,
            },
        )
        return external_id
