"""idempotency key records

Revision ID: 0001_idempotency_keys
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_idempotency_keys"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "idempotency_key_records",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),

        sa.Column("endpoint_key", sa.String(length=128), nullable=False),
        sa.Column("idem_key", sa.String(length=128), nullable=False),

        sa.Column("request_hash", sa.String(length=128), nullable=False),

        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("transaction_id", sa.String(length=80), nullable=True),

        sa.Column("response_status", sa.String(length=16), nullable=True),
        sa.Column("response_json", sa.JSON(), nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),

        sa.UniqueConstraint("endpoint_key", "idem_key", name="uq_idem_scope"),
    )
    op.create_index("ix_idem_lookup", "idempotency_key_records", ["endpoint_key", "idem_key"])


def downgrade():
    op.drop_index("ix_idem_lookup", table_name="idempotency_key_records")
    op.drop_table("idempotency_key_records")
