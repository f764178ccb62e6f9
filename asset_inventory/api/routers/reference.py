from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Response, status

from asset_inventory.api.deps import CurrentActor, raise_http_error, require_perm
from asset_inventory.domain.errors import InventoryError
from asset_inventory.domain.models import (
    CategoryCreate,
    CategoryRead,
    DepartmentCreate,
    DepartmentRead,
)
from asset_inventory.domain.permissions import PERM_REFERENCE_READ, PERM_REFERENCE_WRITE
from asset_inventory.services.reference_service import ReferenceDataService

departments_router = APIRouter()
categories_router = APIRouter()

OrderBy = Literal["name", "created_at"]


def get_reference_service() -> ReferenceDataService:
    return ReferenceDataService()


Service = Annotated[ReferenceDataService, Depends(get_reference_service)]


@departments_router.get(
    "",
    response_model=list[DepartmentRead],
    dependencies=[Depends(require_perm(PERM_REFERENCE_READ))],
)
def list_departments(service: Service, order_by: OrderBy = "name") -> list[DepartmentRead]:
    return [DepartmentRead.model_validate(item) for item in service.list_departments(order_by=order_by)]


@departments_router.post(
    "",
    response_model=DepartmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_REFERENCE_WRITE))],
)
def create_department(payload: DepartmentCreate, actor: CurrentActor, service: Service) -> DepartmentRead:
    try:
        return DepartmentRead.model_validate(service.create_department(actor, payload))
    except InventoryError as exc:
        raise_http_error(exc)


@departments_router.delete(
    "/{department_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_REFERENCE_WRITE))],
)
def delete_department(department_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_department(actor, department_id)
    except InventoryError as exc:
        raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@categories_router.get(
    "",
    response_model=list[CategoryRead],
    dependencies=[Depends(require_perm(PERM_REFERENCE_READ))],
)
def list_categories(service: Service, order_by: OrderBy = "name") -> list[CategoryRead]:
    return [CategoryRead.model_validate(item) for item in service.list_categories(order_by=order_by)]


@categories_router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_REFERENCE_WRITE))],
)
def create_category(payload: CategoryCreate, actor: CurrentActor, service: Service) -> CategoryRead:
    try:
        return CategoryRead.model_validate(service.create_category(actor, payload))
    except InventoryError as exc:
        raise_http_error(exc)


@categories_router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_REFERENCE_WRITE))],
)
def delete_category(category_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_category(actor, category_id)
    except InventoryError as exc:
        raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
