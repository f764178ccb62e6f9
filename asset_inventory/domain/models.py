from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from asset_inventory.domain.permissions import UserRole
from asset_inventory.domain.state_machine import AssetStatus, TrackingChangeType


def now_utc() -> datetime:
    return datetime.now(UTC)


def new_asset_code() -> str:
    return f"AST-{uuid4().hex[:8].upper()}"


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    full_name: str | None = None
    role: UserRole = Field(default=UserRole.USER, index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=now_utc, index=True)


class SystemFlag(SQLModel, table=True):
    """One-time markers; the primary key makes each flag settable only once."""

    __tablename__ = "system_flags"

    name: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=now_utc)


class Department(SQLModel, table=True):
    __tablename__ = "departments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    description: str | None = None
    created_by: str | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Category(SQLModel, table=True):
    __tablename__ = "asset_categories"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    description: str | None = None
    created_by: str | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Asset(SQLModel, table=True):
    __tablename__ = "assets"
    __table_args__ = (
        ForeignKeyConstraint(["category_id"], ["asset_categories.id"], ondelete="RESTRICT"),
        ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="RESTRICT"),
        ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="RESTRICT"),
        Index("ix_assets_owner_created", "created_by", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_code: str = Field(default_factory=new_asset_code, index=True, unique=True)
    name: str = Field(index=True)
    category_id: str = Field(index=True)
    department_id: str = Field(index=True)
    date_purchased: date
    cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    image_url: str | None = None
    status: AssetStatus = Field(default=AssetStatus.AVAILABLE, index=True)
    current_location: str | None = None
    warranty_status: str | None = None
    created_by: str = Field(index=True)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class AssetTrackingHistory(SQLModel, table=True):
    __tablename__ = "asset_tracking_history"
    __table_args__ = (
        ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        Index("ix_asset_tracking_history_asset_created", "asset_id", "created_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    asset_id: str = Field(index=True)
    # No foreign key: entries outlive the user who made them.
    changed_by: str = Field(index=True)
    change_type: TrackingChangeType = Field(index=True)
    old_value: str | None = None
    new_value: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SignupRequest(BaseModel):
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=6)
    full_name: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class BootstrapAdminRequest(BaseModel):
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=6)
    full_name: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole


class UserRead(ORMReadModel):
    id: str
    email: str
    full_name: str | None = None
    role: UserRole
    created_at: datetime


class UserRoleUpdate(BaseModel):
    role: UserRole


class DepartmentCreate(BaseModel):
    name: str = PydanticField(min_length=1)
    description: str | None = None


class DepartmentRead(ORMReadModel):
    id: str
    name: str
    description: str | None = None
    created_by: str | None = None
    created_at: datetime


class CategoryCreate(BaseModel):
    name: str = PydanticField(min_length=1)
    description: str | None = None


class CategoryRead(ORMReadModel):
    id: str
    name: str
    description: str | None = None
    created_by: str | None = None
    created_at: datetime


class AssetCreate(BaseModel):
    name: str = PydanticField(min_length=1)
    category_id: str
    department_id: str
    date_purchased: date
    cost: Decimal = PydanticField(ge=0, max_digits=12, decimal_places=2)
    current_location: str | None = None


class AssetRead(ORMReadModel):
    id: str
    asset_code: str
    name: str
    category_id: str
    department_id: str
    date_purchased: date
    cost: Decimal
    image_url: str | None = None
    status: AssetStatus
    current_location: str | None = None
    warranty_status: str | None = None
    created_by: str
    version: int
    created_at: datetime
    updated_at: datetime


class AssetView(AssetRead):
    category_name: str | None = None
    department_name: str | None = None
    creator_email: str | None = None
    creator_full_name: str | None = None


class AssetTrackingUpdate(BaseModel):
    status: AssetStatus | None = None
    current_location: str | None = None
    warranty_status: str | None = None
    notes: str | None = None
    expected_version: int | None = None


class TrackingEntryRead(ORMReadModel):
    id: int
    asset_id: str
    changed_by: str
    change_type: TrackingChangeType
    old_value: str | None = None
    new_value: str | None = None
    notes: str | None = None
    created_at: datetime


class TrackingEntryView(TrackingEntryRead):
    changer_email: str
    changer_full_name: str | None = None


class AssetTrackingRead(BaseModel):
    asset: AssetView
    history: list[TrackingEntryView]


class NamedCountRead(BaseModel):
    name: str
    count: int


class NamedValueRead(BaseModel):
    name: str
    value: float


class MonthlyCountRead(BaseModel):
    month: str
    count: int


class AnalyticsOverviewRead(BaseModel):
    total_assets: int
    total_users: int
    total_departments: int
    total_categories: int
    total_value: float
    average_value: float
    assets_by_category: list[NamedCountRead]
    assets_by_department: list[NamedCountRead]
    asset_value_by_department: list[NamedValueRead]
    monthly_trend: list[MonthlyCountRead]
