import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

class PipelineConfigIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["list", "discover", "save", "get"]
    empresa_id: uuid.UUID | None = Field(default=None, alias="empresaId")
    pipeline_id: str | None = Field(default=None, alias="pipelineId")
    stage_inicial_id: str | None = Field(default=None, alias="stageInicialId")
    stage_em_andamento_id: str | None = Field(default=None, alias="stageEmAndamentoId")
    stage_concluido_id: str | None = Field(default=None, alias="stageConcluidoId")

class DemandasSyncIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    empresa_id: uuid.UUID = Field(alias="empresaId")

class EmpresaLinkIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # omitted or blank unlinks the empresa
    rd_organization_id: str | None = Field(default=None, alias="rdOrganizationId", max_length=64)
    rd_organization_name: str | None = Field(default=None, alias="rdOrganizationName", max_length=200)
    enabled: bool = True

class EmpresaLinkOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    nome: str
    rd_station_organization_id: str | None
    rd_station_org_name_snapshot: str | None
    rd_station_enabled: bool
