from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, col, select

from asset_inventory.domain.errors import (
    ForbiddenError,
    NotFoundError,
    ReferentialConflictError,
    ValidationError,
)
from asset_inventory.domain.models import (
    Asset,
    Category,
    CategoryCreate,
    Department,
    DepartmentCreate,
)
from asset_inventory.domain.permissions import PERM_REFERENCE_WRITE, Actor
from asset_inventory.infra.db import commit_or_raise, get_engine

logger = logging.getLogger(__name__)

ReferenceModel = type[Department] | type[Category]


class ReferenceDataService:
    """Departments and categories, which classify assets.

    Both kinds are treated the same way: anyone signed in can list them,
    administrators create and delete them, and a record referenced by at
    least one asset cannot be deleted.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _require_writer(self, actor: Actor) -> None:
        if not actor.can(PERM_REFERENCE_WRITE):
            raise ForbiddenError("administrator role required")

    def _create(self, actor: Actor, model: ReferenceModel, payload: DepartmentCreate | CategoryCreate) -> Any:
        self._require_writer(actor)
        name = payload.name.strip()
        if not name:
            raise ValidationError("name is required")
        record = model(
            name=name,
            description=(payload.description or "").strip() or None,
            created_by=actor.user_id,
        )
        with self._session() as session:
            session.add(record)
            commit_or_raise(session)
            session.refresh(record)
        logger.info("%s created: %s", model.__tablename__, record.name, extra={"actor_id": actor.user_id})
        return record

    def _list(self, model: ReferenceModel, order_by: str) -> list[Any]:
        with self._session() as session:
            column = col(model.name) if order_by == "name" else col(model.created_at).desc()
            return list(session.exec(select(model).order_by(column)).all())

    def _count_references(self, session: Session, model: ReferenceModel, record_id: str) -> int:
        reference_column = Asset.department_id if model is Department else Asset.category_id
        statement = select(func.count()).select_from(Asset).where(reference_column == record_id)
        return int(session.exec(statement).one())

    def _delete(self, actor: Actor, model: ReferenceModel, record_id: str, label: str) -> None:
        self._require_writer(actor)
        with self._session() as session:
            record = session.get(model, record_id)
            if record is None:
                raise NotFoundError(f"{label} not found")
            in_use = self._count_references(session, model, record_id)
            if in_use:
                raise ReferentialConflictError(
                    f'cannot delete "{record.name}" {label}: it has {in_use} asset(s) assigned to it'
                )
            session.delete(record)
            commit_or_raise(session)
        logger.info("%s deleted: %s", model.__tablename__, record_id, extra={"actor_id": actor.user_id})

    def count_assets_referencing(self, model: ReferenceModel, record_id: str) -> int:
        with self._session() as session:
            return self._count_references(session, model, record_id)

    def create_department(self, actor: Actor, payload: DepartmentCreate) -> Department:
        return self._create(actor, Department, payload)

    def list_departments(self, *, order_by: str = "name") -> list[Department]:
        return self._list(Department, order_by)

    def delete_department(self, actor: Actor, department_id: str) -> None:
        self._delete(actor, Department, department_id, "department")

    def create_category(self, actor: Actor, payload: CategoryCreate) -> Category:
        return self._create(actor, Category, payload)

    def list_categories(self, *, order_by: str = "name") -> list[Category]:
        return self._list(Category, order_by)

    def delete_category(self, actor: Actor, category_id: str) -> None:
        self._delete(actor, Category, category_id, "category")
