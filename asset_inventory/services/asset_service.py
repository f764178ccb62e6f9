from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from asset_inventory.domain.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from asset_inventory.domain.models import (
    Asset,
    AssetCreate,
    AssetRead,
    AssetTrackingHistory,
    AssetTrackingRead,
    AssetView,
    Category,
    Department,
    User,
    now_utc,
)
from asset_inventory.domain.permissions import (
    PERM_ASSET_DELETE,
    PERM_ASSET_READ_ALL,
    PERM_ASSET_WRITE,
    Actor,
)
from asset_inventory.domain.state_machine import AssetStatus, normalize_location
from asset_inventory.infra.db import commit_or_raise, get_engine
from asset_inventory.services.object_storage_service import ObjectStorageError, ObjectStorageService
from asset_inventory.services.tracking_service import TrackingHistoryLog

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


def normalize_asset_code(raw_code: str) -> str:
    return raw_code.strip().upper()


class AssetService:
    def __init__(
        self,
        *,
        history_log: TrackingHistoryLog | None = None,
        object_storage: ObjectStorageService | None = None,
    ) -> None:
        self._history = history_log or TrackingHistoryLog()
        self._object_storage = object_storage

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _storage(self) -> ObjectStorageService:
        if self._object_storage is None:
            self._object_storage = ObjectStorageService()
        return self._object_storage

    @property
    def max_image_bytes(self) -> int:
        return self._storage().max_upload_bytes

    def _get_asset(self, session: Session, asset_id: str) -> Asset:
        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("asset not found")
        return asset

    def _get_visible_asset(self, session: Session, actor: Actor, asset_id: str) -> Asset:
        asset = self._get_asset(session, asset_id)
        self._ensure_can_manage(actor, asset)
        return asset

    def _ensure_can_manage(self, actor: Actor, asset: Asset) -> None:
        if not actor.can_manage(asset.created_by):
            raise ForbiddenError("only the asset owner or an administrator can access this asset")

    def _build_views(self, session: Session, assets: list[Asset]) -> list[AssetView]:
        category_ids = {item.category_id for item in assets}
        department_ids = {item.department_id for item in assets}
        owner_ids = {item.created_by for item in assets}
        categories: dict[str, str] = {}
        departments: dict[str, str] = {}
        owners: dict[str, User] = {}
        if category_ids:
            rows = session.exec(select(Category).where(col(Category.id).in_(category_ids))).all()
            categories = {row.id: row.name for row in rows}
        if department_ids:
            rows = session.exec(select(Department).where(col(Department.id).in_(department_ids))).all()
            departments = {row.id: row.name for row in rows}
        if owner_ids:
            users = session.exec(select(User).where(col(User.id).in_(owner_ids))).all()
            owners = {user.id: user for user in users}

        views: list[AssetView] = []
        for asset in assets:
            owner = owners.get(asset.created_by)
            views.append(
                AssetView(
                    **AssetRead.model_validate(asset).model_dump(),
                    category_name=categories.get(asset.category_id),
                    department_name=departments.get(asset.department_id),
                    creator_email=owner.email if owner is not None else None,
                    creator_full_name=owner.full_name if owner is not None else None,
                )
            )
        return views

    def create_asset(self, actor: Actor, payload: AssetCreate) -> Asset:
        if not actor.can(PERM_ASSET_WRITE):
            raise ForbiddenError("missing permission to create assets")
        name = payload.name.strip()
        if not name:
            raise ValidationError("asset name is required")
        cost = Decimal(payload.cost)
        if cost < 0:
            raise ValidationError("cost cannot be negative")
        with self._session() as session:
            if session.get(Category, payload.category_id) is None:
                raise NotFoundError("category not found")
            if session.get(Department, payload.department_id) is None:
                raise NotFoundError("department not found")
            asset = Asset(
                name=name,
                category_id=payload.category_id,
                department_id=payload.department_id,
                date_purchased=payload.date_purchased,
                cost=cost,
                status=AssetStatus.AVAILABLE,
                current_location=normalize_location(payload.current_location),
                created_by=actor.user_id,
            )
            session.add(asset)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("asset could not be created; retry the request") from exc
            session.refresh(asset)
        logger.info(
            "asset %s created",
            asset.asset_code,
            extra={"actor_id": actor.user_id, "asset_id": asset.id},
        )
        return asset

    def list_assets(
        self,
        actor: Actor,
        *,
        q: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        all_owners: bool = False,
    ) -> list[AssetView]:
        if all_owners and not actor.can(PERM_ASSET_READ_ALL):
            raise ForbiddenError("administrator role required")
        if limit is not None and not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("offset cannot be negative")
        with self._session() as session:
            statement = select(Asset)
            if not all_owners:
                statement = statement.where(Asset.created_by == actor.user_id)
            search = (q or "").strip()
            if search:
                statement = statement.where(func.lower(Asset.name).contains(search.lower(), autoescape=True))
            statement = statement.order_by(col(Asset.created_at).desc()).offset(offset)
            if limit is not None:
                statement = statement.limit(limit)
            rows = list(session.exec(statement).all())
            return self._build_views(session, rows)

    def get_asset(self, actor: Actor, asset_id: str) -> Asset:
        with self._session() as session:
            return self._get_visible_asset(session, actor, asset_id)

    def get_asset_view(self, actor: Actor, asset_id: str) -> AssetView:
        with self._session() as session:
            asset = self._get_visible_asset(session, actor, asset_id)
            return self._build_views(session, [asset])[0]

    def get_by_code(self, actor: Actor, asset_code: str) -> Asset:
        code = normalize_asset_code(asset_code)
        with self._session() as session:
            asset = session.exec(select(Asset).where(Asset.asset_code == code)).first()
            if asset is None:
                raise NotFoundError(f'asset ID "{code}" not found')
            self._ensure_can_manage(actor, asset)
            return asset

    def track_by_code(self, actor: Actor, asset_code: str) -> AssetTrackingRead:
        asset = self.get_by_code(actor, asset_code)
        with self._session() as session:
            view = self._build_views(session, [asset])[0]
            history = self._history.list_in_session(session, asset.id)
        return AssetTrackingRead(asset=view, history=history)

    def attach_image(
        self,
        actor: Actor,
        asset_id: str,
        *,
        file_name: str,
        content: bytes,
        content_type: str,
    ) -> Asset:
        with self._session() as session:
            asset = self._get_visible_asset(session, actor, asset_id)
            try:
                stored = self._storage().put_image(
                    owner_id=asset.created_by,
                    file_name=file_name,
                    content=content,
                    content_type=content_type,
                )
            except ObjectStorageError as exc:
                raise ValidationError(f"failed to upload image: {exc}") from exc
            asset.image_url = stored.public_url
            asset.updated_at = now_utc()
            session.add(asset)
            try:
                commit_or_raise(session, "asset image update failed")
            except StorageError:
                self._storage().delete_object(bucket=stored.bucket, object_key=stored.object_key)
                raise
            session.refresh(asset)
        logger.info("asset image uploaded", extra={"actor_id": actor.user_id, "asset_id": asset.id})
        return asset

    def delete_asset(self, actor: Actor, asset_id: str) -> None:
        if not actor.can(PERM_ASSET_DELETE):
            raise ForbiddenError("administrator role required")
        with self._session() as session:
            asset = self._get_asset(session, asset_id)
            history = session.exec(
                select(AssetTrackingHistory).where(AssetTrackingHistory.asset_id == asset.id)
            ).all()
            for entry in history:
                session.delete(entry)
            try:
                session.flush()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError("asset delete failed") from exc
            session.delete(asset)
            commit_or_raise(session, "asset delete failed")
        logger.info("asset deleted", extra={"actor_id": actor.user_id, "asset_id": asset_id})
