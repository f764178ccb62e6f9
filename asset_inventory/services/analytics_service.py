from __future__ import annotations

from collections import Counter, defaultdict
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import func
from sqlmodel import Session, select

from asset_inventory.domain.errors import ForbiddenError
from asset_inventory.domain.models import (
    AnalyticsOverviewRead,
    Asset,
    Category,
    Department,
    MonthlyCountRead,
    NamedCountRead,
    NamedValueRead,
    User,
)
from asset_inventory.domain.permissions import PERM_ANALYTICS_READ, Actor
from asset_inventory.infra.db import get_engine

TREND_MONTHS = 6
UNCATEGORIZED = "Uncategorized"
UNASSIGNED = "Unassigned"


def _shift_month(anchor: date, months_back: int) -> tuple[int, int]:
    index = anchor.year * 12 + (anchor.month - 1) - months_back
    return index // 12, index % 12 + 1


class AnalyticsService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _count(self, session: Session, model: type[User] | type[Department] | type[Category] | type[Asset]) -> int:
        return int(session.exec(select(func.count()).select_from(model)).one())

    def overview(self, actor: Actor, *, today: date | None = None) -> AnalyticsOverviewRead:
        if not actor.can(PERM_ANALYTICS_READ):
            raise ForbiddenError("administrator role required")
        anchor = today or datetime.now(UTC).date()
        with self._session() as session:
            assets = list(session.exec(select(Asset)).all())
            categories = {row.id: row.name for row in session.exec(select(Category)).all()}
            departments = {row.id: row.name for row in session.exec(select(Department)).all()}
            total_users = self._count(session, User)

        by_category: Counter[str] = Counter()
        by_department: Counter[str] = Counter()
        value_by_department: defaultdict[str, Decimal] = defaultdict(Decimal)
        by_month: Counter[tuple[int, int]] = Counter()
        total_value = Decimal("0")
        for asset in assets:
            category_name = categories.get(asset.category_id, UNCATEGORIZED)
            department_name = departments.get(asset.department_id, UNASSIGNED)
            cost = Decimal(asset.cost or 0)
            by_category[category_name] += 1
            by_department[department_name] += 1
            value_by_department[department_name] += cost
            by_month[(asset.created_at.year, asset.created_at.month)] += 1
            total_value += cost

        trend: list[MonthlyCountRead] = []
        for months_back in range(TREND_MONTHS - 1, -1, -1):
            year, month = _shift_month(anchor, months_back)
            label = date(year, month, 1).strftime("%b %Y")
            trend.append(MonthlyCountRead(month=label, count=by_month.get((year, month), 0)))

        average_value = total_value / len(assets) if assets else Decimal("0")
        return AnalyticsOverviewRead(
            total_assets=len(assets),
            total_users=total_users,
            total_departments=len(departments),
            total_categories=len(categories),
            total_value=float(round(total_value, 2)),
            average_value=float(round(average_value, 2)),
            assets_by_category=[
                NamedCountRead(name=name, count=count) for name, count in sorted(by_category.items())
            ],
            assets_by_department=[
                NamedCountRead(name=name, count=count) for name, count in sorted(by_department.items())
            ],
            asset_value_by_department=[
                NamedValueRead(name=name, value=float(round(value, 2)))
                for name, value in sorted(value_by_department.items())
            ],
            monthly_trend=trend,
        )
