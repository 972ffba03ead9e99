import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base
from rdsync.models.enums import SinistroPrioridade, SinistroStatus, SyncStatus

class SinistroVida(Base):
    __tablename__ = "sinistros_vida"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    empresa_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("empresas.id"), index=True, nullable=False
    )
    criado_por: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    beneficiario_nome: Mapped[str] = mapped_column(String(200), nullable=False)
    beneficiario_cpf: Mapped[str | None] = mapped_column(String(14), nullable=True)
    tipo_sinistro: Mapped[str] = mapped_column(String(64), nullable=False)
    prioridade: Mapped[SinistroPrioridade] = mapped_column(
        Enum(SinistroPrioridade, name="sinistro_prioridade"),
        nullable=False,
        default=SinistroPrioridade.media,
    )
    valor_estimado: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    status: Mapped[SinistroStatus] = mapped_column(
        Enum(SinistroStatus, name="sinistro_status"),
        nullable=False,
        default=SinistroStatus.em_analise,
    )
    concluido_em: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_minutos: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # rd station link, written only by the sync path
    rd_deal_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    rd_org_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rd_pipeline_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rd_stage_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rd_owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rd_last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rd_sync_status: Mapped[SyncStatus | None] = mapped_column(
        Enum(SyncStatus, name="rd_sync_status"), nullable=True
    )
    rd_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
