"""kv entries
Revision ID: 0001_kv_entries
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_kv_entries"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "kv_entries",
        sa.Column("key", sa.String(length=255), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

def downgrade():
    op.drop_table("kv_entries")
