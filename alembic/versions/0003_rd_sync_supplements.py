"""rd pipeline config, demandas import, sync logs

Revision ID: 0003_rd_sync_supplements
Revises: 0002_rd_webhook_ledger
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0003_rd_sync_supplements"
down_revision = "0002_rd_webhook_ledger"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_STATUS_DEMANDA = ("pendente", "em_andamento", "aguardando_documentacao", "concluido", "cancelado")
_TIPO_DEMANDA = (
    "certificado",
    "carteirinha",
    "alteracao_cadastral",
    "reembolso",
    "autorizacao",
    "agendamento",
    "outro",
)
_PRIORIDADE_DEMANDA = ("baixa", "media", "alta", "urgente")

def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)

def upgrade() -> None:
    for values, name in (
        (_STATUS_DEMANDA, "status_demanda"),
        (_TIPO_DEMANDA, "tipo_demanda"),
        (_PRIORIDADE_DEMANDA, "prioridade_demanda"),
    ):
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    status_demanda = postgresql.ENUM(*_STATUS_DEMANDA, name="status_demanda", create_type=False)
    tipo_demanda = postgresql.ENUM(*_TIPO_DEMANDA, name="tipo_demanda", create_type=False)
    prioridade_demanda = postgresql.ENUM(*_PRIORIDADE_DEMANDA, name="prioridade_demanda", create_type=False)
    rd_sync_status = postgresql.ENUM("ok", "error", name="rd_sync_status", create_type=False)

    op.create_table(
        "empresa_rd_sinistro_config",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("empresa_id", _uuid(), sa.ForeignKey("empresas.id"), nullable=False),
        sa.Column("sinistro_pipeline_id", sa.String(length=64), nullable=False),
        sa.Column("sinistro_pipeline_name", sa.String(length=200), nullable=True),
        sa.Column("sinistro_stage_inicial_id", sa.String(length=64), nullable=False),
        sa.Column("sinistro_stage_inicial_name", sa.String(length=200), nullable=True),
        sa.Column("sinistro_stage_em_andamento_id", sa.String(length=64), nullable=True),
        sa.Column("sinistro_stage_em_andamento_name", sa.String(length=200), nullable=True),
        sa.Column("sinistro_stage_concluido_id", sa.String(length=64), nullable=True),
        sa.Column("sinistro_stage_concluido_name", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("empresa_id", name="uq_empresa_rd_sinistro_config_empresa_id"),
    )

    op.create_table(
        "demandas",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("empresa_id", _uuid(), sa.ForeignKey("empresas.id"), nullable=False),
        sa.Column("criado_por", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="sistema"),
        sa.Column("titulo", sa.String(length=300), nullable=False),
        sa.Column("descricao", sa.Text(), nullable=True),
        sa.Column("tipo", tipo_demanda, nullable=False, server_default="outro"),
        sa.Column("status", status_demanda, nullable=False, server_default="pendente"),
        sa.Column("prioridade", prioridade_demanda, nullable=False, server_default="media"),
        sa.Column("prazo", sa.Date(), nullable=True),
        sa.Column("responsavel_nome", sa.String(length=200), nullable=True),
        sa.Column("concluido_em", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sla_minutos", sa.Integer(), nullable=True),
        sa.Column("rd_task_id", sa.String(length=64), nullable=True),
        sa.Column("rd_deal_id", sa.String(length=64), nullable=True),
        sa.Column("rd_deal_name", sa.String(length=300), nullable=True),
        sa.Column("rd_last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rd_sync_status", rd_sync_status, nullable=True),
        sa.Column("rd_sync_error", sa.Text(), nullable=True),
        sa.Column("raw_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("empresa_id", "rd_task_id", name="uq_demandas_empresa_rd_task"),
    )
    op.create_index("ix_demandas_empresa_id", "demandas", ["empresa_id"])

    op.create_table(
        "demandas_historico",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("demanda_id", _uuid(), sa.ForeignKey("demandas.id"), nullable=False),
        sa.Column("empresa_id", _uuid(), sa.ForeignKey("empresas.id"), nullable=False),
        sa.Column("tipo_evento", sa.String(length=32), nullable=False),
        sa.Column("descricao", sa.Text(), nullable=True),
        sa.Column("status_anterior", sa.String(length=32), nullable=True),
        sa.Column("status_novo", sa.String(length=32), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="sistema"),
        sa.Column("criado_por", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("usuario_nome", sa.String(length=200), nullable=True),
        sa.Column("meta", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("event_hash", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("event_hash", name="uq_demandas_historico_event_hash"),
    )
    op.create_index("ix_demandas_historico_demanda_id", "demandas_historico", ["demanda_id"])
    op.create_index("ix_demandas_historico_empresa_id", "demandas_historico", ["empresa_id"])

    op.create_table(
        "rd_station_sync_logs",
        sa.Column("id", _uuid(), primary_key=True, nullable=False),
        sa.Column("empresa_id", _uuid(), sa.ForeignKey("empresas.id"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="running"),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("tasks_imported", sa.Integer(), nullable=True),
        sa.Column("tasks_updated", sa.Integer(), nullable=True),
        sa.Column("tasks_skipped", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rd_station_sync_logs_empresa_id", "rd_station_sync_logs", ["empresa_id"])

def downgrade() -> None:
    op.drop_index("ix_rd_station_sync_logs_empresa_id", table_name="rd_station_sync_logs")
    op.drop_table("rd_station_sync_logs")

    op.drop_index("ix_demandas_historico_empresa_id", table_name="demandas_historico")
    op.drop_index("ix_demandas_historico_demanda_id", table_name="demandas_historico")
    op.drop_table("demandas_historico")

    op.drop_index("ix_demandas_empresa_id", table_name="demandas")
    op.drop_table("demandas")

    op.drop_table("empresa_rd_sinistro_config")

    for name in ("prioridade_demanda", "tipo_demanda", "status_demanda"):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
