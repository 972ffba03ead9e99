"""init schema

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

_APP_ROLE = ("admin_vizio", "admin_empresa", "rh_gestor", "visualizador")
_SINISTRO_STATUS = (
    "em_analise",
    "pendente_documentos",
    "em_andamento",
    "enviado_operadora",
    "aprovado",
    "negado",
    "pago",
    "concluido",
)
_SINISTRO_PRIORIDADE = ("baixa", "media", "alta", "critica")
_RD_SYNC_STATUS = ("ok", "error")

def upgrade() -> None:
    # enums
    for values, name in (
        (_APP_ROLE, "app_role"),
        (_SINISTRO_STATUS, "sinistro_status"),
        (_SINISTRO_PRIORIDADE, "sinistro_prioridade"),
        (_RD_SYNC_STATUS, "rd_sync_status"),
    ):
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    app_role = postgresql.ENUM(*_APP_ROLE, name="app_role", create_type=False)
    sinistro_status = postgresql.ENUM(*_SINISTRO_STATUS, name="sinistro_status", create_type=False)
    sinistro_prioridade = postgresql.ENUM(*_SINISTRO_PRIORIDADE, name="sinistro_prioridade", create_type=False)
    rd_sync_status = postgresql.ENUM(*_RD_SYNC_STATUS, name="rd_sync_status", create_type=False)

    op.create_table(
        "empresas",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("nome", sa.String(length=200), nullable=False),
        sa.Column("rd_station_organization_id", sa.String(length=64), nullable=True),
        sa.Column("rd_station_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rd_station_last_sync", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("nome_completo", sa.String(length=200), nullable=True),
        sa.Column("empresa_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("empresas.id"), nullable=True),
        sa.Column("role", app_role, nullable=False, server_default="visualizador"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_empresa_id", "users", ["empresa_id"])

    op.create_table(
        "sinistros_vida",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("empresa_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("empresas.id"), nullable=False),
        sa.Column("criado_por", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("beneficiario_nome", sa.String(length=200), nullable=False),
        sa.Column("beneficiario_cpf", sa.String(length=14), nullable=True),
        sa.Column("tipo_sinistro", sa.String(length=64), nullable=False),
        sa.Column("prioridade", sinistro_prioridade, nullable=False, server_default="media"),
        sa.Column("valor_estimado", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sinistro_status, nullable=False, server_default="em_analise"),
        sa.Column("concluido_em", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sla_minutos", sa.Integer(), nullable=True),
        sa.Column("rd_deal_id", sa.String(length=64), nullable=True),
        sa.Column("rd_org_id", sa.String(length=64), nullable=True),
        sa.Column("rd_pipeline_id", sa.String(length=64), nullable=True),
        sa.Column("rd_stage_id", sa.String(length=64), nullable=True),
        sa.Column("rd_owner_id", sa.String(length=64), nullable=True),
        sa.Column("rd_last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rd_sync_status", rd_sync_status, nullable=True),
        sa.Column("rd_sync_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("rd_deal_id", name="uq_sinistros_vida_rd_deal_id"),
    )
    op.create_index("ix_sinistros_vida_empresa_id", "sinistros_vida", ["empresa_id"])

def downgrade() -> None:
    op.drop_index("ix_sinistros_vida_empresa_id", table_name="sinistros_vida")
    op.drop_table("sinistros_vida")

    op.drop_index("ix_users_empresa_id", table_name="users")
    op.drop_table("users")

    op.drop_table("empresas")

    for name in ("rd_sync_status", "sinistro_prioridade", "sinistro_status", "app_role"):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
