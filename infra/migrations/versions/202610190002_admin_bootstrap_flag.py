"""admin bootstrap flag

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190002"
down_revision = "202610190001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "system_flags",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )
    # Databases that already have an administrator count as bootstrapped.
    op.execute(
        "INSERT INTO system_flags (name, created_at) "
        "SELECT 'admin_bootstrapped', CURRENT_TIMESTAMP "
        "WHERE EXISTS (SELECT 1 FROM users WHERE role = 'ADMIN')"
    )


def downgrade() -> None:
    op.drop_table("system_flags")
