from __future__ import annotations

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from asset_inventory.domain.errors import (
    ForbiddenError,
    NotFoundError,
    ReferentialConflictError,
    ValidationError,
)
from asset_inventory.domain.models import Asset, Category, CategoryCreate, Department, DepartmentCreate
from asset_inventory.domain.permissions import Actor
from asset_inventory.services.reference_service import ReferenceDataService
from tests.helpers import auth_header, bootstrap_and_login, login, signup_and_login


def test_referenced_department_and_category_cannot_be_deleted(
    engine: Engine,
    admin_actor: Actor,
    owner_actor: Actor,
    reference_ids: dict[str, str],
    make_asset: Callable[..., Asset],
) -> None:
    make_asset(owner_actor)
    make_asset(owner_actor, name="Spare charger", cost="49.90")
    service = ReferenceDataService()

    with pytest.raises(ReferentialConflictError) as department_exc:
        service.delete_department(admin_actor, reference_ids["department_id"])
    assert "2 asset(s)" in str(department_exc.value)
    assert '"Engineering"' in str(department_exc.value)

    with pytest.raises(ReferentialConflictError):
        service.delete_category(admin_actor, reference_ids["category_id"])

    assert [item.id for item in service.list_departments()] == [reference_ids["department_id"]]
    assert [item.id for item in service.list_categories()] == [reference_ids["category_id"]]
    assert service.count_assets_referencing(Department, reference_ids["department_id"]) == 2
    assert service.count_assets_referencing(Category, reference_ids["category_id"]) == 2


def test_unreferenced_records_are_deleted(engine: Engine, admin_actor: Actor) -> None:
    service = ReferenceDataService()
    department = service.create_department(admin_actor, DepartmentCreate(name="  Finance ", description=""))
    category = service.create_category(admin_actor, CategoryCreate(name="Phones", description="Mobile"))
    assert department.name == "Finance"
    assert department.description is None
    assert department.created_by == admin_actor.user_id

    service.delete_department(admin_actor, department.id)
    service.delete_category(admin_actor, category.id)

    assert service.list_departments() == []
    assert service.list_categories() == []
    with pytest.raises(NotFoundError):
        service.delete_department(admin_actor, department.id)


def test_only_admins_write_reference_data(engine: Engine, owner_actor: Actor) -> None:
    with pytest.raises(ForbiddenError):
        ReferenceDataService().create_category(owner_actor, CategoryCreate(name="Cameras"))


def test_reference_endpoints(client: TestClient) -> None:
    admin_token = bootstrap_and_login(client)
    user_token = signup_and_login(client, "reader@example.com")

    for name in ("Sales", "Accounting"):
        created = client.post("/api/departments", json={"name": name}, headers=auth_header(admin_token))
        assert created.status_code == 201

    denied = client.post("/api/departments", json={"name": "Rogue"}, headers=auth_header(user_token))
    assert denied.status_code == 403

    by_name = client.get("/api/departments", headers=auth_header(user_token))
    assert by_name.status_code == 200
    assert [item["name"] for item in by_name.json()] == ["Accounting", "Sales"]

    newest_first = client.get(
        "/api/departments",
        params={"order_by": "created_at"},
        headers=auth_header(user_token),
    )
    assert [item["name"] for item in newest_first.json()] == ["Accounting", "Sales"]

    category = client.post("/api/categories", json={"name": "Desks"}, headers=auth_header(admin_token)).json()
    department = by_name.json()[0]
    client.post(
        "/api/assets",
        json={
            "name": "Standing desk",
            "category_id": category["id"],
            "department_id": department["id"],
            "date_purchased": "2026-04-04",
            "cost": "650",
        },
        headers=auth_header(user_token),
    )

    blocked = client.delete(f"/api/categories/{category['id']}", headers=auth_header(admin_token))
    assert blocked.status_code == 409
    assert "1 asset(s)" in blocked.json()["detail"]
    assert len(client.get("/api/categories", headers=auth_header(user_token)).json()) == 1

    missing = client.delete("/api/departments/missing", headers=auth_header(admin_token))
    assert missing.status_code == 404


def test_blank_names_are_rejected(client: TestClient, admin_actor: Actor) -> None:
    with pytest.raises(ValidationError, match="name is required"):
        ReferenceDataService().create_department(admin_actor, DepartmentCreate(name="   "))

    admin_token = login(client, "admin@example.com", "admin-pass")
    for path in ("/api/departments", "/api/categories"):
        response = client.post(path, json={"name": "   "}, headers=auth_header(admin_token))
        assert response.status_code == 422
        assert client.get(path, headers=auth_header(admin_token)).json() == []
