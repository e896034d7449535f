"""Add topic records table.

Revision ID: 0001_topic_records
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_topic_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB if is_postgres else sa.JSON

    op.create_table(
        "topic_records",
        sa.Column("id", sa.String(length=100), primary_key=True),
        sa.Column("messages", json_type, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "ix_topic_records_updated_at",
        "topic_records",
        ["updated_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_topic_records_updated_at", table_name="topic_records")
    op.drop_table("topic_records")
