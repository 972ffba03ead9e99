import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base, JSONType
from rdsync.models.enums import PrioridadeDemanda, StatusDemanda, SyncStatus, TipoDemanda

class Demanda(Base):
    __tablename__ = "demandas"
    __table_args__ = (
        sa.UniqueConstraint("empresa_id", "rd_task_id", name="uq_demandas_empresa_rd_task"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    empresa_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("empresas.id"), index=True, nullable=False
    )
    criado_por: Mapped[uuid.UUID] = mapped_column(sa.Uuid, sa.ForeignKey("users.id"), nullable=False)

    source: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="sistema")
    titulo: Mapped[str] = mapped_column(sa.String(300), nullable=False)
    descricao: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    tipo: Mapped[TipoDemanda] = mapped_column(
        sa.Enum(TipoDemanda, name="tipo_demanda"), nullable=False, default=TipoDemanda.outro
    )
    status: Mapped[StatusDemanda] = mapped_column(
        sa.Enum(StatusDemanda, name="status_demanda"), nullable=False, default=StatusDemanda.pendente
    )
    prioridade: Mapped[PrioridadeDemanda] = mapped_column(
        sa.Enum(PrioridadeDemanda, name="prioridade_demanda"),
        nullable=False,
        default=PrioridadeDemanda.media,
    )
    prazo: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    responsavel_nome: Mapped[str | None] = mapped_column(sa.String(200), nullable=True)
    concluido_em: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    sla_minutos: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    rd_task_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    rd_deal_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    rd_deal_name: Mapped[str | None] = mapped_column(sa.String(300), nullable=True)
    rd_last_sync_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    rd_sync_status: Mapped[SyncStatus | None] = mapped_column(
        sa.Enum(SyncStatus, name="rd_sync_status"), nullable=True
    )
    rd_sync_error: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    raw_payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

class DemandaHistorico(Base):
    __tablename__ = "demandas_historico"
    __table_args__ = (
        sa.UniqueConstraint("event_hash", name="uq_demandas_historico_event_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    demanda_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("demandas.id"), index=True, nullable=False
    )
    empresa_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("empresas.id"), index=True, nullable=False
    )

    tipo_evento: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    descricao: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    status_anterior: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    status_novo: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    source: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="sistema")
    criado_por: Mapped[uuid.UUID] = mapped_column(sa.Uuid, sa.ForeignKey("users.id"), nullable=False)
    usuario_nome: Mapped[str | None] = mapped_column(sa.String(200), nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    event_hash: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
