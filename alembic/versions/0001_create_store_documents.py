from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


revision = "0001_create_store_documents"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    if "store_documents" in inspector.get_table_names():
        return

    payload_type = postgresql.JSONB(astext_type=sa.Text())
    if bind.dialect.name != "postgresql":
        payload_type = sa.JSON()

    op.create_table(
        "store_documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=80), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payload", payload_type, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_store_documents_key", "store_documents", ["key"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_store_documents_key", table_name="store_documents")
    op.drop_table("store_documents")
