"""rd webhook ledger + sinistro timeline

Revision ID: 0002_rd_webhook_ledger
Revises: 0001_init
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0002_rd_webhook_ledger"
down_revision = "0001_init"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

def upgrade() -> None:
    op.create_table(
        "rd_webhook_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=255), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        # the only guard against concurrent duplicate deliveries
        sa.UniqueConstraint("provider", "event_id", name="uq_rd_webhook_events_provider_event_id"),
    )

    op.create_table(
        "sinistros_vida_timeline",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("sinistro_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sinistros_vida.id"), nullable=False),
        sa.Column("empresa_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("empresas.id"), nullable=False),
        sa.Column("tipo_evento", sa.String(length=32), nullable=False),
        sa.Column("descricao", sa.Text(), nullable=True),
        sa.Column("status_anterior", sa.String(length=32), nullable=True),
        sa.Column("status_novo", sa.String(length=32), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="sistema"),
        sa.Column("criado_por", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("usuario_nome", sa.String(length=200), nullable=True),
        sa.Column("meta", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("rd_event_id", sa.String(length=255), nullable=True),
        sa.Column("event_hash", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("event_hash", name="uq_sinistros_vida_timeline_event_hash"),
        sa.UniqueConstraint("rd_event_id", name="uq_sinistros_vida_timeline_rd_event_id"),
    )
    op.create_index("ix_sinistros_vida_timeline_sinistro_id", "sinistros_vida_timeline", ["sinistro_id"])
    op.create_index("ix_sinistros_vida_timeline_empresa_id", "sinistros_vida_timeline", ["empresa_id"])

def downgrade() -> None:
    op.drop_index("ix_sinistros_vida_timeline_empresa_id", table_name="sinistros_vida_timeline")
    op.drop_index("ix_sinistros_vida_timeline_sinistro_id", table_name="sinistros_vida_timeline")
    op.drop_table("sinistros_vida_timeline")

    op.drop_table("rd_webhook_events")
