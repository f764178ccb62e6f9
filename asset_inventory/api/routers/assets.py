from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile, status

from asset_inventory.api.deps import CurrentActor, raise_http_error, require_perm
from asset_inventory.domain.errors import InventoryError
from asset_inventory.domain.models import (
    AssetCreate,
    AssetRead,
    AssetTrackingRead,
    AssetTrackingUpdate,
    AssetView,
    TrackingEntryView,
)
from asset_inventory.domain.permissions import (
    PERM_ASSET_DELETE,
    PERM_ASSET_READ,
    PERM_ASSET_READ_ALL,
    PERM_ASSET_WRITE,
    PERM_WARRANTY_REGISTER,
)
from asset_inventory.infra.audit import set_audit_context
from asset_inventory.services.asset_service import MAX_PAGE_SIZE, AssetService
from asset_inventory.services.lifecycle_service import AssetLifecycleController
from asset_inventory.services.tracking_service import TrackingHistoryLog
from asset_inventory.services.warranty_service import WarrantyService

router = APIRouter()
tracking_router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


def get_lifecycle_controller() -> AssetLifecycleController:
    return AssetLifecycleController()


def get_history_log() -> TrackingHistoryLog:
    return TrackingHistoryLog()


def get_warranty_service() -> WarrantyService:
    return WarrantyService()


Service = Annotated[AssetService, Depends(get_asset_service)]
Lifecycle = Annotated[AssetLifecycleController, Depends(get_lifecycle_controller)]
HistoryLog = Annotated[TrackingHistoryLog, Depends(get_history_log)]
Warranty = Annotated[WarrantyService, Depends(get_warranty_service)]
PageLimit = Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)]
PageOffset = Annotated[int, Query(ge=0)]


@router.post(
    "",
    response_model=AssetRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def create_asset(payload: AssetCreate, actor: CurrentActor, service: Service) -> AssetRead:
    try:
        return AssetRead.model_validate(service.create_asset(actor, payload))
    except InventoryError as exc:
        raise_http_error(exc)


@router.get(
    "",
    response_model=list[AssetView],
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def list_my_assets(
    actor: CurrentActor,
    service: Service,
    q: str | None = None,
    limit: PageLimit = None,
    offset: PageOffset = 0,
) -> list[AssetView]:
    try:
        return service.list_assets(actor, q=q, limit=limit, offset=offset)
    except InventoryError as exc:
        raise_http_error(exc)


@router.get(
    "/all",
    response_model=list[AssetView],
    dependencies=[Depends(require_perm(PERM_ASSET_READ_ALL))],
)
def list_all_assets(
    actor: CurrentActor,
    service: Service,
    q: str | None = None,
    limit: PageLimit = None,
    offset: PageOffset = 0,
) -> list[AssetView]:
    try:
        return service.list_assets(actor, q=q, limit=limit, offset=offset, all_owners=True)
    except InventoryError as exc:
        raise_http_error(exc)


@router.get(
    "/{asset_id}",
    response_model=AssetView,
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def get_asset(asset_id: str, actor: CurrentActor, service: Service) -> AssetView:
    try:
        return service.get_asset_view(actor, asset_id)
    except InventoryError as exc:
        raise_http_error(exc)


@router.delete(
    "/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_ASSET_DELETE))],
)
def delete_asset(asset_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_asset(actor, asset_id)
    except InventoryError as exc:
        raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{asset_id}/image",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def upload_asset_image(
    asset_id: str,
    actor: CurrentActor,
    service: Service,
    image: Annotated[UploadFile, File()],
) -> AssetRead:
    # One byte past the limit is enough for the size check to reject it.
    content = image.file.read(service.max_image_bytes + 1)
    try:
        asset = service.attach_image(
            actor,
            asset_id,
            file_name=image.filename or "image",
            content=content,
            content_type=image.content_type or "application/octet-stream",
        )
        return AssetRead.model_validate(asset)
    except InventoryError as exc:
        raise_http_error(exc)


@router.patch(
    "/{asset_id}/tracking",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def update_asset_tracking(
    asset_id: str,
    payload: AssetTrackingUpdate,
    request: Request,
    actor: CurrentActor,
    controller: Lifecycle,
) -> AssetRead:
    set_audit_context(
        request,
        action="asset.tracking.update",
        resource=f"assets/{asset_id}",
        detail={"what": {"fields": sorted(payload.model_fields_set)}},
    )
    try:
        return AssetRead.model_validate(controller.update_asset(asset_id, actor, payload))
    except InventoryError as exc:
        raise_http_error(exc)


@router.get(
    "/{asset_id}/history",
    response_model=list[TrackingEntryView],
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def list_asset_history(
    asset_id: str,
    actor: CurrentActor,
    service: Service,
    history: HistoryLog,
    limit: PageLimit = None,
) -> list[TrackingEntryView]:
    try:
        asset = service.get_asset(actor, asset_id)
        return history.list_for_asset(asset.id, limit)
    except InventoryError as exc:
        raise_http_error(exc)


@router.post(
    "/{asset_id}/warranty",
    response_model=None,
    dependencies=[Depends(require_perm(PERM_WARRANTY_REGISTER))],
)
def register_asset_warranty(
    asset_id: str,
    request: Request,
    actor: CurrentActor,
    warranty: Warranty,
) -> Any:
    set_audit_context(request, action="asset.warranty.register", resource=f"assets/{asset_id}")
    try:
        return warranty.register_warranty(actor, asset_id)
    except InventoryError as exc:
        raise_http_error(exc)


@tracking_router.get(
    "/{asset_code}",
    response_model=AssetTrackingRead,
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def track_asset(asset_code: str, actor: CurrentActor, service: Service) -> AssetTrackingRead:
    try:
        return service.track_by_code(actor, asset_code)
    except InventoryError as exc:
        raise_http_error(exc)
