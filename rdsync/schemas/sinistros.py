import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from rdsync.models.enums import SinistroStatus

class SinistroSyncIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sinistro_id: uuid.UUID = Field(alias="sinistroId")
    action: Literal["push", "pull"] = "push"

class SinistroStatusIn(BaseModel):
    status: SinistroStatus
    motivo: str | None = Field(default=None, max_length=500)

class SinistroStatusOut(BaseModel):
    id: uuid.UUID
    status: SinistroStatus
    status_anterior: SinistroStatus
    concluido_em: datetime | None
    sla_minutos: int | None

class TimelineEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sinistro_id: uuid.UUID
    empresa_id: uuid.UUID
    tipo_evento: str
    descricao: str | None
    status_anterior: str | None
    status_novo: str | None
    source: str
    usuario_nome: str | None
    meta: dict | None
    rd_event_id: str | None
    created_at: datetime
