import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from rdsync.config import Settings, get_settings
from rdsync.db import get_db
from rdsync.errors import InvalidTransitionException, NotFoundException
from rdsync.models.enums import TimelineSource
from rdsync.models.sinistro import SinistroVida
from rdsync.models.sinistro_timeline import SinistroTimeline
from rdsync.models.user import User
from rdsync.ratelimit import rate_limit
from rdsync.rbac.deps import ensure_empresa_access, require_perm
from rdsync.rd.reconcile import SINISTRO_FIELDS, ProposedChange, reconcile, status_value
from rdsync.rd.sinistro_sync import SinistroSyncService
from rdsync.rd.stages import can_transition
from rdsync.rd.timeline import status_change_entry
from rdsync.rd.webhook_processor import sinistro_timeline
from rdsync.schemas.sinistros import (
    SinistroStatusIn,
    SinistroStatusOut,
    SinistroSyncIn,
    TimelineEntryOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sinistros"])

def get_sinistro_sync_service(settings: Settings = Depends(get_settings)) -> SinistroSyncService:
    return SinistroSyncService(settings)

def _get_sinistro(db: Session, sinistro_id: uuid.UUID, user: User) -> SinistroVida:
    sinistro = db.get(SinistroVida, sinistro_id)
    if sinistro is None:
        raise NotFoundException("sinistro", sinistro_id)
    ensure_empresa_access(user, sinistro.empresa_id)
    return sinistro

@router.post("/rd/sinistros/sync")
def sync_sinistro(
    payload: SinistroSyncIn,
    user: User = Depends(require_perm("sinistros:sync")),
    db: Session = Depends(get_db),
    service: SinistroSyncService = Depends(get_sinistro_sync_service),
    _: None = Depends(
        rate_limit(
            "rd:sinistros:sync",
            limit_setting="rate_limit_sync_per_min",
            window_seconds=60,
        )
    ),
) -> dict:
    sinistro = _get_sinistro(db, payload.sinistro_id, user)
    return service.run(db, sinistro, user, payload.action)

@router.patch("/sinistros/{sinistro_id}/status", response_model=SinistroStatusOut)
def change_status(
    sinistro_id: uuid.UUID,
    payload: SinistroStatusIn,
    user: User = Depends(require_perm("sinistros:update_status")),
    db: Session = Depends(get_db),
) -> SinistroStatusOut:
    sinistro = _get_sinistro(db, sinistro_id, user)
    current = status_value(sinistro.status)
    target = payload.status.value
    if not can_transition(current, target):
        raise InvalidTransitionException(current, target)

    now = datetime.now(timezone.utc)
    # local edits do not count as a sync
    result = reconcile(sinistro, ProposedChange(status=target), SINISTRO_FIELDS, now=now, record_sync=False)

    sinistro_timeline.append(
        db,
        sinistro.id,
        sinistro.empresa_id,
        status_change_entry(
            status_anterior=result.previous_status,
            status_novo=result.new_status,
            descricao=f'Status alterado para "{result.new_status}"',
            criado_por=user.id,
            actor_name=user.display_name,
            source=TimelineSource.sistema,
            created_at=sinistro.created_at,
            now=now,
            sla_minutes=sinistro.sla_minutos,
            motivo=payload.motivo or None,
        ),
    )
    db.commit()
    db.refresh(sinistro)
    logger.info("sinistro %s: %s -> %s by %s", sinistro.id, current, target, user.id)

    return SinistroStatusOut(
        id=sinistro.id,
        status=sinistro.status,
        status_anterior=current,
        concluido_em=sinistro.concluido_em,
        sla_minutos=sinistro.sla_minutos,
    )

@router.get("/sinistros/{sinistro_id}/timeline", response_model=list[TimelineEntryOut])
def sinistro_timeline_entries(
    sinistro_id: uuid.UUID,
    user: User = Depends(require_perm("sinistros:read")),
    db: Session = Depends(get_db),
) -> list[TimelineEntryOut]:
    sinistro = _get_sinistro(db, sinistro_id, user)
    q = (
        select(SinistroTimeline)
        .where(SinistroTimeline.sinistro_id == sinistro.id)
        .order_by(SinistroTimeline.created_at.asc(), SinistroTimeline.id.asc())
    )
    return [TimelineEntryOut.model_validate(r) for r in db.scalars(q).all()]

@router.get("/empresas/{empresa_id}/sinistros/timeline", response_model=list[TimelineEntryOut])
def empresa_timeline_entries(
    empresa_id: uuid.UUID,
    limit: int = Query(default=100, ge=1, le=500),
    user: User = Depends(require_perm("sinistros:read")),
    db: Session = Depends(get_db),
) -> list[TimelineEntryOut]:
    ensure_empresa_access(user, empresa_id)
    q = (
        select(SinistroTimeline)
        .where(SinistroTimeline.empresa_id == empresa_id)
        .order_by(SinistroTimeline.created_at.desc())
        .limit(limit)
    )
    return [TimelineEntryOut.model_validate(r) for r in db.scalars(q).all()]
