import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base, JSONType

class SinistroTimeline(Base):
    """Append-only history of a sinistro. Rows are never updated."""

    __tablename__ = "sinistros_vida_timeline"
    __table_args__ = (
        sa.UniqueConstraint("event_hash", name="uq_sinistros_vida_timeline_event_hash"),
        sa.UniqueConstraint("rd_event_id", name="uq_sinistros_vida_timeline_rd_event_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    sinistro_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("sinistros_vida.id"), index=True, nullable=False
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

    rd_event_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    event_hash: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
