from __future__ import annotations

from collections.abc import Callable

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from asset_inventory.domain.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from asset_inventory.domain.models import Asset, AssetTrackingHistory, AssetTrackingUpdate
from asset_inventory.domain.permissions import Actor
from asset_inventory.domain.state_machine import AssetStatus, TrackingChangeType
from asset_inventory.services.lifecycle_service import AssetLifecycleController
from asset_inventory.services.tracking_service import TrackingHistoryLog


def _history(engine: Engine, asset_id: str) -> list[AssetTrackingHistory]:
    with Session(engine) as session:
        statement = (
            select(AssetTrackingHistory)
            .where(AssetTrackingHistory.asset_id == asset_id)
            .order_by(AssetTrackingHistory.id)
        )
        return list(session.exec(statement).all())


def _reload(engine: Engine, asset_id: str) -> Asset:
    with Session(engine) as session:
        asset = session.get(Asset, asset_id)
        assert asset is not None
        return asset


def test_status_change_records_one_entry(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()

    updated = controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(status=AssetStatus.IN_USE))

    assert updated.status == AssetStatus.IN_USE
    assert updated.version == asset.version + 1
    entries = _history(engine, asset.id)
    assert len(entries) == 1
    assert entries[0].change_type == TrackingChangeType.STATUS_CHANGE
    assert entries[0].old_value == "Available"
    assert entries[0].new_value == "In Use"
    assert entries[0].changed_by == owner_actor.user_id


def test_status_and_location_change_records_two_entries(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()

    controller.update_asset(
        asset.id,
        owner_actor,
        AssetTrackingUpdate(status=AssetStatus.UNDER_MAINTENANCE, current_location="  Repair bay 2 "),
    )

    entries = _history(engine, asset.id)
    assert [entry.change_type for entry in entries] == [
        TrackingChangeType.STATUS_CHANGE,
        TrackingChangeType.LOCATION_CHANGE,
    ]
    assert entries[1].old_value is None
    assert entries[1].new_value == "Repair bay 2"
    assert _reload(engine, asset.id).current_location == "Repair bay 2"


def test_unchanged_values_record_nothing(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()

    result = controller.update_asset(
        asset.id,
        owner_actor,
        AssetTrackingUpdate(status=AssetStatus.AVAILABLE, current_location="   "),
    )

    assert result.version == asset.version
    assert _history(engine, asset.id) == []


def test_notes_record_manual_update(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()

    controller.update_asset(
        asset.id,
        owner_actor,
        AssetTrackingUpdate(status=AssetStatus.IN_USE, current_location="HQ", notes="handed to Bo"),
    )

    entries = _history(engine, asset.id)
    assert len(entries) == 3
    manual = entries[-1]
    assert manual.change_type == TrackingChangeType.MANUAL_UPDATE
    assert manual.old_value is None
    assert manual.new_value == "handed to Bo"
    assert manual.notes == "handed to Bo"


def test_notes_alone_do_not_bump_version(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)

    result = AssetLifecycleController().update_asset(asset.id, owner_actor, AssetTrackingUpdate(notes="audited"))

    assert result.version == asset.version
    assert len(_history(engine, asset.id)) == 1


def test_clearing_location_records_empty_new_value(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()
    controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(current_location="Warehouse"))

    controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(current_location=None))

    entries = _history(engine, asset.id)
    assert entries[-1].old_value == "Warehouse"
    assert entries[-1].new_value is None
    assert _reload(engine, asset.id).current_location is None


def test_invalid_status_is_rejected_without_changes(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()

    with pytest.raises(ValidationError):
        controller.update_asset(
            asset.id,
            owner_actor,
            AssetTrackingUpdate.model_construct(status="Broken", current_location="Dock"),
        )
    with pytest.raises(ValidationError):
        controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(status=None))

    reloaded = _reload(engine, asset.id)
    assert reloaded.status == AssetStatus.AVAILABLE
    assert reloaded.current_location is None
    assert _history(engine, asset.id) == []


def test_status_stays_in_allowed_set_after_any_sequence(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()
    proposals: list[object] = ["Retired", "nope", "In Use", "", "Under Maintenance", "available"]

    for proposal in proposals:
        try:
            controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate.model_construct(status=proposal))
        except ValidationError:
            pass
        assert _reload(engine, asset.id).status in set(AssetStatus)

    assert _reload(engine, asset.id).status == AssetStatus.UNDER_MAINTENANCE


def test_unknown_asset_raises_not_found(engine: Engine, owner_actor: Actor) -> None:
    with pytest.raises(NotFoundError):
        AssetLifecycleController().update_asset(
            "missing", owner_actor, AssetTrackingUpdate(status=AssetStatus.RETIRED)
        )


def test_non_owner_cannot_update(
    engine: Engine,
    owner_actor: Actor,
    make_user: Callable[[str], Actor],
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    stranger = make_user("stranger@example.com")

    with pytest.raises(ForbiddenError):
        AssetLifecycleController().update_asset(asset.id, stranger, AssetTrackingUpdate(status=AssetStatus.RETIRED))
    assert _history(engine, asset.id) == []


def test_admin_can_update_any_asset(
    engine: Engine,
    owner_actor: Actor,
    admin_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)

    AssetLifecycleController().update_asset(asset.id, admin_actor, AssetTrackingUpdate(status=AssetStatus.RETIRED))

    entries = _history(engine, asset.id)
    assert entries[0].changed_by == admin_actor.user_id


def test_stale_expected_version_conflicts(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()
    controller.update_asset(
        asset.id,
        owner_actor,
        AssetTrackingUpdate(status=AssetStatus.IN_USE, expected_version=asset.version),
    )

    with pytest.raises(ConflictError):
        controller.update_asset(
            asset.id,
            owner_actor,
            AssetTrackingUpdate(status=AssetStatus.RETIRED, expected_version=asset.version),
        )

    assert _reload(engine, asset.id).status == AssetStatus.IN_USE
    assert len(_history(engine, asset.id)) == 1


def test_history_failure_leaves_asset_unchanged(
    monkeypatch: pytest.MonkeyPatch,
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)

    def _stage_orphan(self: TrackingHistoryLog, session: Session, entry: AssetTrackingHistory) -> AssetTrackingHistory:
        entry.asset_id = "asset-that-does-not-exist"
        session.add(entry)
        return entry

    monkeypatch.setattr(TrackingHistoryLog, "stage", _stage_orphan)

    with pytest.raises(StorageError):
        AssetLifecycleController().update_asset(
            asset.id,
            owner_actor,
            AssetTrackingUpdate(status=AssetStatus.RETIRED, current_location="Scrap yard"),
        )

    reloaded = _reload(engine, asset.id)
    assert reloaded.status == AssetStatus.AVAILABLE
    assert reloaded.current_location is None
    assert reloaded.version == asset.version
    assert _history(engine, asset.id) == []


def test_warranty_is_never_cleared(
    engine: Engine,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    asset = make_asset(owner_actor)
    controller = AssetLifecycleController()

    controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(warranty_status="Warranty Registered"))
    controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(warranty_status=None))
    controller.update_asset(asset.id, owner_actor, AssetTrackingUpdate(warranty_status="   "))

    assert _reload(engine, asset.id).warranty_status == "Warranty Registered"
    assert _history(engine, asset.id) == []
