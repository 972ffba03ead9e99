import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base

class Empresa(Base):
    __tablename__ = "empresas"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    nome: Mapped[str] = mapped_column(sa.String(200), nullable=False)

    rd_station_organization_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    # name as rd reported it when the link was made
    rd_station_org_name_snapshot: Mapped[str | None] = mapped_column(sa.String(200), nullable=True)
    rd_station_enabled: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    rd_station_last_sync: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
