from __future__ import annotations

import logging

from sqlmodel import Session

from asset_inventory.domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from asset_inventory.domain.models import (
    Asset,
    AssetTrackingHistory,
    AssetTrackingUpdate,
    now_utc,
)
from asset_inventory.domain.permissions import Actor
from asset_inventory.domain.state_machine import (
    TrackingChangeType,
    normalize_location,
    parse_status,
    warranty_can_change,
)
from asset_inventory.infra.db import commit_or_raise, get_engine
from asset_inventory.services.tracking_service import TrackingHistoryLog

logger = logging.getLogger(__name__)


class AssetLifecycleController:
    """Applies status, location, warranty and note changes to one asset.

    Status and location changes that actually differ from the stored value
    each produce one tracking entry; non-empty notes produce one more. The
    asset update and its entries are committed together, so a failed history
    write leaves the asset untouched. Warranty changes are stored without a
    tracking entry and a registered warranty is never cleared.
    """

    def __init__(self, history_log: TrackingHistoryLog | None = None) -> None:
        self._history = history_log or TrackingHistoryLog()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _load_for_update(self, session: Session, asset_id: str, actor: Actor) -> Asset:
        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("asset not found")
        if not actor.can_manage(asset.created_by):
            raise ForbiddenError("only the asset owner or an administrator can update this asset")
        return asset

    def _entry(
        self,
        asset: Asset,
        actor: Actor,
        change_type: TrackingChangeType,
        old_value: str | None,
        new_value: str | None,
        notes: str | None = None,
    ) -> AssetTrackingHistory:
        return AssetTrackingHistory(
            asset_id=asset.id,
            changed_by=actor.user_id,
            change_type=change_type,
            old_value=old_value,
            new_value=new_value,
            notes=notes,
        )

    def update_asset(self, asset_id: str, actor: Actor, changes: AssetTrackingUpdate) -> Asset:
        present = changes.model_fields_set
        with self._session() as session:
            asset = self._load_for_update(session, asset_id, actor)
            if changes.expected_version is not None and changes.expected_version != asset.version:
                raise ConflictError(
                    f"asset was modified concurrently (expected version {changes.expected_version}, "
                    f"current version {asset.version})"
                )

            entries: list[AssetTrackingHistory] = []
            mutated = False

            if "status" in present:
                if changes.status is None:
                    raise ValidationError("status cannot be empty")
                try:
                    new_status = parse_status(changes.status)
                except ValueError as exc:
                    raise ValidationError(str(exc)) from exc
                if new_status != asset.status:
                    entries.append(
                        self._entry(
                            asset,
                            actor,
                            TrackingChangeType.STATUS_CHANGE,
                            asset.status.value,
                            new_status.value,
                        )
                    )
                    asset.status = new_status
                    mutated = True

            if "current_location" in present:
                new_location = normalize_location(changes.current_location)
                if new_location != asset.current_location:
                    entries.append(
                        self._entry(
                            asset,
                            actor,
                            TrackingChangeType.LOCATION_CHANGE,
                            asset.current_location,
                            new_location,
                        )
                    )
                    asset.current_location = new_location
                    mutated = True

            if "warranty_status" in present and warranty_can_change(asset.warranty_status, changes.warranty_status):
                asset.warranty_status = (changes.warranty_status or "").strip()
                mutated = True

            notes = (changes.notes or "").strip()
            if notes:
                entries.append(
                    self._entry(asset, actor, TrackingChangeType.MANUAL_UPDATE, None, notes, notes)
                )

            if not mutated and not entries:
                return asset

            if mutated:
                asset.version += 1
                asset.updated_at = now_utc()
                session.add(asset)
            for entry in entries:
                self._history.stage(session, entry)
            commit_or_raise(session, "asset tracking update failed")
            session.refresh(asset)

        logger.info(
            "asset %s updated",
            asset.asset_code,
            extra={"actor_id": actor.user_id, "asset_id": asset.id, "change_count": len(entries)},
        )
        return asset
