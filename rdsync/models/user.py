import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base
from rdsync.models.enums import AppRole

class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    nome_completo: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # null for broker staff (admin_vizio) who see every empresa
    empresa_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("empresas.id"), index=True, nullable=True
    )
    role: Mapped[AppRole] = mapped_column(
        Enum(AppRole, name="app_role"), nullable=False, default=AppRole.visualizador
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def display_name(self) -> str:
        return self.nome_completo or self.email
