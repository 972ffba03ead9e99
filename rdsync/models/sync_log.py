import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base

class RdStationSyncLog(Base):
    __tablename__ = "rd_station_sync_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    empresa_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("empresas.id"), index=True, nullable=False
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="running")
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    tasks_imported: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tasks_updated: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tasks_skipped: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
