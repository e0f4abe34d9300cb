"""lock and data cache tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "lock_cache",
        sa.Column("pstr", sa.String(length=64), primary_key=True),
        sa.Column("cred_id", sa.String(length=128), nullable=False),
        sa.Column("psa_id", sa.String(length=64), nullable=False, server_default=sa.text("''")),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("cred_id", name="uq_lock_cache_cred_id"),
    )
    op.create_index("ix_lock_cache_expire_at", "lock_cache", ["expire_at"])

    op.create_table(
        "data_cache",
        sa.Column("pstr", sa.String(length=64), primary_key=True),
        sa.Column("cred_id", sa.String(length=128), primary_key=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_data_cache_expire_at", "data_cache", ["expire_at"])


def downgrade() -> None:
    op.drop_index("ix_data_cache_expire_at", table_name="data_cache")
    op.drop_table("data_cache")
    op.drop_index("ix_lock_cache_expire_at", table_name="lock_cache")
    op.drop_table("lock_cache")
