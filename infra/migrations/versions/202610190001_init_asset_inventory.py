"""init asset inventory tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("ADMIN", "USER", name="userrole")
asset_status = sa.Enum("AVAILABLE", "IN_USE", "UNDER_MAINTENANCE", "RETIRED", name="assetstatus")
change_type = sa.Enum("STATUS_CHANGE", "LOCATION_CHANGE", "MANUAL_UPDATE", name="trackingchangetype")


def upgrade() -> None:
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    for table in ("departments", "asset_categories"):
        op.create_table(
            table,
            sa.Column("id", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("created_by", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(f"ix_{table}_name", table, ["name"])
        op.create_index(f"ix_{table}_created_by", table, ["created_by"])
        op.create_index(f"ix_{table}_created_at", table, ["created_at"])

    op.create_table(
        "assets",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category_id", sa.String(), nullable=False),
        sa.Column("department_id", sa.String(), nullable=False),
        sa.Column("date_purchased", sa.Date(), nullable=False),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("status", asset_status, nullable=False),
        sa.Column("current_location", sa.String(), nullable=True),
        sa.Column("warranty_status", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["asset_categories.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_asset_code", "assets", ["asset_code"], unique=True)
    op.create_index("ix_assets_name", "assets", ["name"])
    op.create_index("ix_assets_category_id", "assets", ["category_id"])
    op.create_index("ix_assets_department_id", "assets", ["department_id"])
    op.create_index("ix_assets_status", "assets", ["status"])
    op.create_index("ix_assets_created_by", "assets", ["created_by"])
    op.create_index("ix_assets_created_at", "assets", ["created_at"])
    op.create_index("ix_assets_owner_created", "assets", ["created_by", "created_at"])

    op.create_table(
        "asset_tracking_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_id", sa.String(), nullable=False),
        sa.Column("changed_by", sa.String(), nullable=False),
        sa.Column("change_type", change_type, nullable=False),
        sa.Column("old_value", sa.String(), nullable=True),
        sa.Column("new_value", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_asset_tracking_history_asset_id", "asset_tracking_history", ["asset_id"])
    op.create_index("ix_asset_tracking_history_changed_by", "asset_tracking_history", ["changed_by"])
    op.create_index("ix_asset_tracking_history_change_type", "asset_tracking_history", ["change_type"])
    op.create_index("ix_asset_tracking_history_created_at", "asset_tracking_history", ["created_at"])
    op.create_index(
        "ix_asset_tracking_history_asset_created",
        "asset_tracking_history",
        ["asset_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("asset_tracking_history")
    op.drop_table("assets")
    op.drop_table("asset_categories")
    op.drop_table("departments")
    op.drop_table("users")
    op.drop_table("audit_logs")
    bind = op.get_bind()
    for enum_type in (change_type, asset_status, user_role):
        enum_type.drop(bind, checkfirst=True)
