from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends

from asset_inventory.api.deps import CurrentActor, raise_http_error, require_perm
from asset_inventory.domain.errors import InventoryError
from asset_inventory.domain.models import AnalyticsOverviewRead
from asset_inventory.domain.permissions import PERM_ANALYTICS_READ
from asset_inventory.services.analytics_service import AnalyticsService

router = APIRouter()


def get_analytics_service() -> AnalyticsService:
    return AnalyticsService()


Service = Annotated[AnalyticsService, Depends(get_analytics_service)]


@router.get(
    "/overview",
    response_model=AnalyticsOverviewRead,
    dependencies=[Depends(require_perm(PERM_ANALYTICS_READ))],
)
def overview(actor: CurrentActor, service: Service, as_of: date | None = None) -> AnalyticsOverviewRead:
    try:
        return service.overview(actor, today=as_of)
    except InventoryError as exc:
        raise_http_error(exc)
