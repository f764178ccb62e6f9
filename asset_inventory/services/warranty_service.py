from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import httpx
from sqlmodel import Session

from asset_inventory.domain.errors import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
)
from asset_inventory.domain.models import Asset, now_utc
from asset_inventory.domain.permissions import PERM_WARRANTY_REGISTER, Actor
from asset_inventory.domain.state_machine import WARRANTY_REGISTERED
from asset_inventory.infra.db import commit_or_raise, get_engine

logger = logging.getLogger(__name__)

DEFAULT_WARRANTY_API_URL = "https://server5.eport.ws"


def serial_number_for(asset: Asset) -> str:
    return f"SN-{asset.id.replace('-', '')[:12].upper()}"


def _error_detail(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str) and detail:
            return detail
    return fallback


@dataclass(frozen=True)
class WarrantyProviderConfig:
    base_url: str
    username: str | None
    password: str | None
    timeout_seconds: float

    @classmethod
    def from_env(cls) -> WarrantyProviderConfig:
        return cls(
            base_url=os.getenv("WARRANTY_API_URL", DEFAULT_WARRANTY_API_URL).rstrip("/"),
            username=os.getenv("WARRANTY_API_USERNAME") or None,
            password=os.getenv("WARRANTY_API_PASSWORD") or None,
            timeout_seconds=float(os.getenv("WARRANTY_API_TIMEOUT_SECONDS", "15")),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.username and self.password)


class WarrantyProviderClient:
    """Login-then-register call-through to the external warranty provider."""

    def __init__(
        self,
        config: WarrantyProviderConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or WarrantyProviderConfig.from_env()
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=self._transport,
        )

    def _login(self, client: httpx.Client) -> str:
        response = client.post(
            "/api/login",
            data={"username": self._config.username, "password": self._config.password},
        )
        if not response.is_success:
            raise ExternalServiceError(
                _error_detail(response, "Failed to authenticate with warranty system")
            )
        try:
            token = response.json().get("access_token")
        except (ValueError, AttributeError) as exc:
            raise ExternalServiceError("warranty system returned an invalid login response") from exc
        if not token:
            raise ExternalServiceError("warranty system did not return an access token")
        return str(token)

    def register(self, *, asset_id: str, asset_name: str, serial_number: str) -> Any:
        if not self._config.is_configured:
            raise ExternalServiceError("warranty provider credentials are not configured")
        try:
            with self._client() as client:
                token = self._login(client)
                response = client.post(
                    "/api/register-warranty",
                    json={
                        "asset_id": asset_id,
                        "asset_name": asset_name,
                        "serial_number": serial_number,
                    },
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.TimeoutException as exc:
            raise ExternalServiceError("warranty system timed out") from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"warranty system unreachable: {exc}") from exc

        if not response.is_success:
            raise ExternalServiceError(_error_detail(response, "Failed to register warranty"))
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalServiceError("warranty system returned an invalid response") from exc


class WarrantyService:
    def __init__(self, client: WarrantyProviderClient | None = None) -> None:
        self._client = client or WarrantyProviderClient()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _load(self, session: Session, actor: Actor, asset_id: str) -> Asset:
        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("asset not found")
        if not actor.can(PERM_WARRANTY_REGISTER) or not actor.can_manage(asset.created_by):
            raise ForbiddenError("only the asset owner or an administrator can register its warranty")
        return asset

    def register_warranty(self, actor: Actor, asset_id: str) -> Any:
        with self._session() as session:
            asset = self._load(session, actor, asset_id)
            if asset.warranty_status:
                raise ConflictError(f"warranty already registered for {asset.asset_code}")

        try:
            payload = self._client.register(
                asset_id=asset.asset_code,
                asset_name=asset.name,
                serial_number=serial_number_for(asset),
            )
        except ExternalServiceError:
            logger.warning(
                "warranty registration failed for %s",
                asset.asset_code,
                exc_info=True,
                extra={"actor_id": actor.user_id, "asset_id": asset.id},
            )
            raise

        with self._session() as session:
            asset = self._load(session, actor, asset_id)
            if not asset.warranty_status:
                asset.warranty_status = WARRANTY_REGISTERED
                asset.version += 1
                asset.updated_at = now_utc()
                session.add(asset)
                commit_or_raise(session, "failed to record warranty registration")
        logger.info(
            "warranty registered for %s",
            asset.asset_code,
            extra={"actor_id": actor.user_id, "asset_id": asset.id},
        )
        return payload
