import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base

class EmpresaRdSinistroConfig(Base):
    __tablename__ = "empresa_rd_sinistro_config"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    empresa_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("empresas.id"), unique=True, nullable=False
    )

    sinistro_pipeline_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sinistro_pipeline_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sinistro_stage_inicial_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sinistro_stage_inicial_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sinistro_stage_em_andamento_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sinistro_stage_em_andamento_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sinistro_stage_concluido_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sinistro_stage_concluido_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
