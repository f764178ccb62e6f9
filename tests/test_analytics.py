from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session

from asset_inventory.domain.errors import ForbiddenError
from asset_inventory.domain.models import Asset, DepartmentCreate
from asset_inventory.domain.permissions import Actor
from asset_inventory.services.analytics_service import AnalyticsService, _shift_month
from asset_inventory.services.reference_service import ReferenceDataService
from tests.helpers import auth_header, bootstrap_and_login, signup_and_login


def _backdate(engine: Engine, asset_id: str, created_at: datetime) -> None:
    with Session(engine) as session:
        asset = session.get(Asset, asset_id)
        assert asset is not None
        asset.created_at = created_at
        session.add(asset)
        session.commit()


def test_shift_month_wraps_years() -> None:
    assert _shift_month(date(2026, 2, 10), 0) == (2026, 2)
    assert _shift_month(date(2026, 2, 10), 2) == (2025, 12)
    assert _shift_month(date(2026, 2, 10), 14) == (2024, 12)


def test_overview_aggregates(
    engine: Engine,
    admin_actor: Actor,
    owner_actor: Actor,
    make_asset: Callable[..., Asset],
) -> None:
    ReferenceDataService().create_department(admin_actor, DepartmentCreate(name="Empty dept"))
    first = make_asset(owner_actor, name="Laptop A", cost="1000.00")
    second = make_asset(owner_actor, name="Laptop B", cost="500.50")
    third = make_asset(admin_actor, name="Laptop C", cost="0")
    _backdate(engine, first.id, datetime(2026, 10, 2, tzinfo=UTC))
    _backdate(engine, second.id, datetime(2026, 8, 20, tzinfo=UTC))
    _backdate(engine, third.id, datetime(2025, 12, 31, tzinfo=UTC))

    overview = AnalyticsService().overview(admin_actor, today=date(2026, 10, 19))

    assert overview.total_assets == 3
    assert overview.total_users == 2
    assert overview.total_departments == 2
    assert overview.total_categories == 1
    assert overview.total_value == 1500.5
    assert overview.average_value == 500.17
    assert [(item.name, item.count) for item in overview.assets_by_category] == [("Laptops", 3)]
    assert [(item.name, item.count) for item in overview.assets_by_department] == [("Engineering", 3)]
    assert [(item.name, item.value) for item in overview.asset_value_by_department] == [("Engineering", 1500.5)]
    assert [(item.month, item.count) for item in overview.monthly_trend] == [
        ("May 2026", 0),
        ("Jun 2026", 0),
        ("Jul 2026", 0),
        ("Aug 2026", 1),
        ("Sep 2026", 0),
        ("Oct 2026", 1),
    ]


def test_overview_with_no_assets(engine: Engine, admin_actor: Actor) -> None:
    overview = AnalyticsService().overview(admin_actor, today=date(2026, 1, 5))

    assert overview.total_assets == 0
    assert overview.average_value == 0
    assert overview.assets_by_category == []
    assert overview.monthly_trend[0].month == "Aug 2025"
    assert overview.monthly_trend[-1].month == "Jan 2026"


def test_overview_requires_admin(engine: Engine, owner_actor: Actor) -> None:
    with pytest.raises(ForbiddenError):
        AnalyticsService().overview(owner_actor)


def test_admin_overview_endpoint(client: TestClient) -> None:
    admin_token = bootstrap_and_login(client)
    user_token = signup_and_login(client, "viewer@example.com")

    assert client.get("/api/admin/overview", headers=auth_header(user_token)).status_code == 403

    response = client.get(
        "/api/admin/overview",
        params={"as_of": "2026-10-19"},
        headers=auth_header(admin_token),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total_users"] == 2
    assert body["total_assets"] == 0
    assert [item["month"] for item in body["monthly_trend"]][-1] == "Oct 2026"
