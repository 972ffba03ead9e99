import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rdsync.config import Settings, get_settings
from rdsync.db import get_db
from rdsync.errors import NotFoundException, UpstreamException
from rdsync.models.empresa import Empresa
from rdsync.models.user import User
from rdsync.rbac.deps import require_perm
from rdsync.rd.client import RDStationError
from rdsync.rd.sinistro_sync import ClientFactory, require_rd_token
from rdsync.routes.rd_pipeline import get_rd_client_factory
from rdsync.schemas.rd import EmpresaLinkIn, EmpresaLinkOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rd", tags=["rd"])

def _organization_out(org: dict) -> dict:
    return {
        "id": org.get("_id") or org.get("id"),
        "name": org.get("name"),
        "cnpj": org.get("legal_document") or org.get("cnpj"),
        "address": org.get("address"),
        "created_at": org.get("created_at"),
    }

@router.get("/organizations")
def list_organizations(
    q: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    user: User = Depends(require_perm("rd:organizations")),
    settings: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_rd_client_factory),
) -> dict:
    require_rd_token(settings)
    try:
        with client_factory(settings) as client:
            organizations, has_more = client.list_organizations(q or None, page)
    except RDStationError as e:
        raise UpstreamException(
            "could not list RD Station organizations",
            details={"status_code": e.status_code, "message": str(e)},
        ) from e

    logger.info("listed %d rd organizations (page %d)", len(organizations), page)
    return {
        "success": True,
        "organizations": [_organization_out(o) for o in organizations],
        "hasMore": has_more,
        "page": page,
    }

@router.post("/empresas/{empresa_id}/link")
def link_empresa(
    empresa_id: uuid.UUID,
    payload: EmpresaLinkIn,
    user: User = Depends(require_perm("rd:link_empresa")),
    db: Session = Depends(get_db),
) -> dict:
    empresa = db.get(Empresa, empresa_id)
    if empresa is None:
        raise NotFoundException("empresa", empresa_id)

    org_id = (payload.rd_organization_id or "").strip() or None
    empresa.rd_station_enabled = payload.enabled
    empresa.rd_station_organization_id = org_id
    empresa.rd_station_org_name_snapshot = payload.rd_organization_name if org_id else None
    db.commit()
    db.refresh(empresa)

    if org_id:
        logger.info("empresa %s linked to rd org %s by %s", empresa.id, org_id, user.id)
    else:
        logger.info("empresa %s unlinked from rd by %s", empresa.id, user.id)
    return {"success": True, "empresa": EmpresaLinkOut.model_validate(empresa).model_dump(mode="json")}
