"""
Add bookmarks table.

Revision ID: 4c1e9a7d2b30
Revises:
Create Date: 2026-10-18 10:12:41.503218
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.Text(), nullable=True),
        sa.Column("snapshot_key", sa.Text(), nullable=True),
        sa.Column("favicon_key", sa.Text(), nullable=True),
        sa.Column("archived", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "idx_bookmarks_created_at", "bookmarks", [sa.text("created_at DESC")], unique=False,
    )
    op.create_index("idx_bookmarks_tags", "bookmarks", ["tags"], unique=False)
    op.create_index("uq_bookmarks_url", "bookmarks", ["url"], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("uq_bookmarks_url", table_name="bookmarks")
    op.drop_index("idx_bookmarks_tags", table_name="bookmarks")
    op.drop_index("idx_bookmarks_created_at", table_name="bookmarks")
    op.drop_table("bookmarks")
