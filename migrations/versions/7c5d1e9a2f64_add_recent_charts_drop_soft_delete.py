"""Add recent charts to users and drop soft-delete columns

Revision ID: 7c5d1e9a2f64
Revises: 4e2a9c1d7b30
Create Date: 2026-10-18 14:30:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7c5d1e9a2f64"
down_revision: Union[str, Sequence[str], None] = "4e2a9c1d7b30"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # server_default backfills existing rows; new rows use the model default
    op.add_column(
        "users",
        sa.Column("recent_charts", sa.JSON(), nullable=False, server_default="[]"),
    )
    op.alter_column("users", "recent_charts", server_default=None)

    # Users are deleted outright, so the soft-delete columns are unused
    for table in ("users", "user_sessions"):
        op.drop_column(table, "deleted_at")
        op.drop_column(table, "is_deleted")


def downgrade() -> None:
    """Downgrade schema."""
    for table in ("user_sessions", "users"):
        op.add_column(
            table,
            sa.Column(
                "is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
        )
        op.alter_column(table, "is_deleted", server_default=None)
        op.add_column(
            table, sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)
        )

    op.drop_column("users", "recent_charts")
