from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rdsync.config import Settings, get_settings
from rdsync.db import get_db
from rdsync.errors import NotFoundException, ValidationException
from rdsync.models.empresa import Empresa
from rdsync.models.user import User
from rdsync.rbac.deps import require_perm
from rdsync.rd.client import RDStationClient
from rdsync.rd.pipeline_discovery import PipelineDiscovery, get_config
from rdsync.rd.sinistro_sync import ClientFactory, require_rd_token
from rdsync.schemas.rd import PipelineConfigIn

router = APIRouter(prefix="/rd", tags=["rd"])

def get_rd_client_factory() -> ClientFactory:
    return RDStationClient

@router.post("/sinistro-pipeline")
def sinistro_pipeline(
    payload: PipelineConfigIn,
    user: User = Depends(require_perm("rd:pipeline_config")),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_rd_client_factory),
) -> dict:
    empresa = None
    if payload.empresa_id is not None:
        empresa = db.get(Empresa, payload.empresa_id)
        if empresa is None:
            raise NotFoundException("empresa", payload.empresa_id)

    if payload.action == "get":
        if empresa is None:
            raise ValidationException("empresaId is required", field="empresaId")
        return get_config(db, empresa.id)

    require_rd_token(settings)
    org_id = empresa.rd_station_organization_id if empresa is not None else None

    with client_factory(settings) as client:
        discovery = PipelineDiscovery(settings, client)
        if payload.action == "list":
            return discovery.list_all(org_id)

        if empresa is None:
            raise ValidationException("empresaId is required", field="empresaId")

        if payload.action == "discover":
            return discovery.discover(db, empresa, org_id)

        if not payload.pipeline_id or not payload.stage_inicial_id:
            raise ValidationException(
                "pipelineId and stageInicialId are required",
                details={"fields": ["pipelineId", "stageInicialId"]},
            )
        return discovery.save(
            db,
            empresa,
            org_id,
            payload.pipeline_id,
            payload.stage_inicial_id,
            payload.stage_em_andamento_id,
            payload.stage_concluido_id,
        )
