from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rdsync.config import Settings, get_settings
from rdsync.db import get_db
from rdsync.errors import NotFoundException
from rdsync.models.empresa import Empresa
from rdsync.models.user import User
from rdsync.ratelimit import rate_limit
from rdsync.rbac.deps import ensure_empresa_access, require_perm
from rdsync.rd.demandas_sync import DemandasSyncService
from rdsync.schemas.rd import DemandasSyncIn

router = APIRouter(prefix="/rd", tags=["demandas"])

def get_demandas_sync_service(settings: Settings = Depends(get_settings)) -> DemandasSyncService:
    return DemandasSyncService(settings)

@router.post("/demandas/sync")
def sync_demandas(
    payload: DemandasSyncIn,
    user: User = Depends(require_perm("demandas:sync")),
    db: Session = Depends(get_db),
    service: DemandasSyncService = Depends(get_demandas_sync_service),
    _: None = Depends(
        rate_limit(
            "rd:demandas:sync",
            limit_setting="rate_limit_sync_per_min",
            window_seconds=60,
        )
    ),
) -> dict:
    empresa = db.get(Empresa, payload.empresa_id)
    if empresa is None:
        raise NotFoundException("empresa", payload.empresa_id)
    ensure_empresa_access(user, empresa.id)
    return service.run(db, empresa, user)
