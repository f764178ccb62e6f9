from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from asset_inventory import main as app_main
from asset_inventory.domain.models import (
    Asset,
    AssetCreate,
    BootstrapAdminRequest,
    CategoryCreate,
    DepartmentCreate,
    SignupRequest,
)
from asset_inventory.domain.permissions import Actor
from asset_inventory.infra import db
from asset_inventory.services.asset_service import AssetService
from asset_inventory.services.identity_service import IdentityService
from asset_inventory.services.reference_service import ReferenceDataService


@pytest.fixture()
def engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Engine:
    test_engine = db.build_engine(f"sqlite:///{tmp_path / 'inventory_test.db'}")
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setenv("OBJECT_STORAGE_ROOT", str(tmp_path / "objects"))
    return test_engine


@pytest.fixture()
def client(engine: Engine) -> Generator[TestClient, None, None]:
    test_client = TestClient(app_main.app)
    yield test_client
    app_main.app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture()
def admin_actor(engine: Engine) -> Actor:
    user = IdentityService().bootstrap_admin(
        BootstrapAdminRequest(email="admin@example.com", password="admin-pass", full_name="Ada Admin")
    )
    return Actor(user_id=user.id, role=user.role, email=user.email)


@pytest.fixture()
def make_user(engine: Engine) -> Callable[[str], Actor]:
    def _make(email: str) -> Actor:
        user = IdentityService().signup(SignupRequest(email=email, password="user-pass", full_name=None))
        return Actor(user_id=user.id, role=user.role, email=user.email)

    return _make


@pytest.fixture()
def owner_actor(make_user: Callable[[str], Actor]) -> Actor:
    return make_user("owner@example.com")


@pytest.fixture()
def reference_ids(admin_actor: Actor) -> dict[str, str]:
    service = ReferenceDataService()
    department = service.create_department(admin_actor, DepartmentCreate(name="Engineering"))
    category = service.create_category(admin_actor, CategoryCreate(name="Laptops"))
    return {"department_id": department.id, "category_id": category.id}


@pytest.fixture()
def make_asset(reference_ids: dict[str, str]) -> Callable[..., Asset]:
    def _make(actor: Actor, name: str = "ThinkPad X1", cost: str = "1500.00") -> Asset:
        return AssetService().create_asset(
            actor,
            AssetCreate(
                name=name,
                category_id=reference_ids["category_id"],
                department_id=reference_ids["department_id"],
                date_purchased=date(2026, 1, 15),
                cost=Decimal(cost),
            ),
        )

    return _make

