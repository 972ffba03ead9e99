"""
Imports RD tasks of an empresa's deals as local demandas.

Tasks are upserted by (empresa_id, rd_task_id). Status goes through the
shared reconciler; history rows are deduplicated by event hash so a rerun
over unchanged tasks writes nothing new.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rdsync.config import Settings
from rdsync.errors import ErrorCode, UpstreamException, ValidationException
from rdsync.logging_config import get_correlation_id
from rdsync.models.demanda import Demanda, DemandaHistorico
from rdsync.models.empresa import Empresa
from rdsync.models.enums import (
    StatusDemanda,
    SyncLogStatus,
    TimelineEventType,
    TimelineSource,
    TipoDemanda,
)
from rdsync.models.sync_log import RdStationSyncLog
from rdsync.models.user import User
from rdsync.rd.client import RDStationClient, RDStationError
from rdsync.rd.reconcile import DEMANDA_FIELDS, ProposedChange, reconcile, status_value
from rdsync.rd.sinistro_sync import ClientFactory, require_rd_token
from rdsync.rd.timeline import TimelineEntryIn, TimelineWriter, compute_event_hash

logger = logging.getLogger(__name__)

RD_SYNC_ACTOR = "Sistema RD Station"

demanda_historico = TimelineWriter(DemandaHistorico, "demanda_id", supports_rd_event_id=False)

_TASK_TYPES = {
    "call": TipoDemanda.agendamento,
    "meeting": TipoDemanda.agendamento,
    "lunch": TipoDemanda.agendamento,
    "visit": TipoDemanda.agendamento,
}

def task_status(task: dict) -> StatusDemanda:
    return StatusDemanda.concluido if task.get("done") else StatusDemanda.em_andamento

def task_tipo(task: dict) -> TipoDemanda:
    return _TASK_TYPES.get(str(task.get("type") or "").lower(), TipoDemanda.outro)

def task_prazo(task: dict) -> date | None:
    raw = task.get("date")
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw).split("T")[0])
    except ValueError:
        return None

def task_responsavel(task: dict) -> str | None:
    users = task.get("users") or []
    if users and isinstance(users[0], dict):
        return users[0].get("name")
    return None

class DemandasSyncService:
    def __init__(self, settings: Settings, client_factory: ClientFactory = RDStationClient):
        self.settings = settings
        self.client_factory = client_factory

    def run(self, db: Session, empresa: Empresa, actor: User) -> dict[str, Any]:
        require_rd_token(self.settings)
        if not empresa.rd_station_enabled:
            raise ValidationException("RD Station integration is disabled for this empresa", field="empresaId")
        if not empresa.rd_station_organization_id:
            raise ValidationException(
                "empresa is not linked to an RD Station organization",
                error_code=ErrorCode.rd_org_not_linked,
            )

        log = RdStationSyncLog(
            empresa_id=empresa.id,
            status=SyncLogStatus.running.value,
            request_id=get_correlation_id(),
        )
        db.add(log)
        db.commit()
        log_id = log.id

        client = self.client_factory(self.settings)
        try:
            counters, total = self._import(db, client, empresa, actor)
        except Exception as e:
            db.rollback()
            failed = db.get(RdStationSyncLog, log_id)
            failed.status = SyncLogStatus.error.value
            failed.error_message = str(e)[:1000]
            failed.completed_at = datetime.now(timezone.utc)
            db.commit()
            if isinstance(e, RDStationError):
                raise UpstreamException(
                    "RD Station demandas sync failed",
                    details={"status_code": e.status_code, "message": str(e)},
                ) from e
            raise
        finally:
            client.close()

        now = datetime.now(timezone.utc)
        log.status = SyncLogStatus.success.value
        log.tasks_imported = counters["imported"]
        log.tasks_updated = counters["updated"]
        log.tasks_skipped = counters["skipped"]
        log.completed_at = now
        empresa.rd_station_last_sync = now
        db.commit()

        logger.info(
            "demandas sync for empresa %s: %s imported, %s updated, %s skipped",
            empresa.id,
            counters["imported"],
            counters["updated"],
            counters["skipped"],
        )
        return {"success": True, **counters, "total": total, "syncLogId": str(log_id)}

    def _import(
        self,
        db: Session,
        client: RDStationClient,
        empresa: Empresa,
        actor: User,
    ) -> tuple[dict[str, int], int]:
        counters = {"imported": 0, "updated": 0, "skipped": 0}
        deals = client.list_deals(empresa.rd_station_organization_id)
        logger.info("found %d rd deals for empresa %s", len(deals), empresa.id)

        tasks: list[tuple[dict, str | None]] = []
        for deal in deals:
            deal_id = deal.get("_id") if isinstance(deal, dict) else None
            if not deal_id:
                logger.warning("skipping rd deal without an id for empresa %s", empresa.id)
                continue
            try:
                for task in client.list_tasks(deal_id):
                    tasks.append((task, deal.get("name")))
            except RDStationError as e:
                logger.warning("skipping tasks of rd deal %s: %s", deal_id, e)

        now = datetime.now(timezone.utc)
        for task, deal_name in tasks:
            if not task.get("_id"):
                counters["skipped"] += 1
                continue
            try:
                with db.begin_nested():
                    outcome = self._upsert_task(db, empresa, actor, task, deal_name, now)
            except SQLAlchemyError as e:
                logger.warning("skipping rd task %s: %s", task.get("_id"), e)
                counters["skipped"] += 1
                continue
            counters[outcome] += 1

        return counters, len(tasks)

    def _upsert_task(
        self,
        db: Session,
        empresa: Empresa,
        actor: User,
        task: dict,
        deal_name: str | None,
        now: datetime,
    ) -> str:
        task_id = str(task["_id"])
        demanda = db.scalar(
            select(Demanda).where(Demanda.empresa_id == empresa.id, Demanda.rd_task_id == task_id)
        )
        created = demanda is None
        if created:
            demanda = Demanda(
                empresa_id=empresa.id,
                criado_por=actor.id,
                source=TimelineSource.rd_station.value,
                rd_task_id=task_id,
                status=StatusDemanda.pendente,
            )
            db.add(demanda)

        demanda.titulo = task.get("subject") or "Tarefa sem título"
        demanda.descricao = task.get("notes") or ""
        demanda.tipo = task_tipo(task)
        demanda.prazo = task_prazo(task)
        demanda.responsavel_nome = task_responsavel(task)
        demanda.rd_deal_id = task.get("deal_id") or (task.get("deal") or {}).get("_id")
        demanda.rd_deal_name = deal_name
        demanda.raw_payload = task

        result = reconcile(demanda, ProposedChange(status=task_status(task).value), DEMANDA_FIELDS, now=now)
        db.flush()

        if created:
            entry = TimelineEntryIn(
                tipo_evento=TimelineEventType.created.value,
                descricao="Importado do RD Station CRM",
                criado_por=actor.id,
                status_novo=status_value(demanda.status),
                usuario_nome=RD_SYNC_ACTOR,
                meta={"rd_task_id": task_id},
                event_hash=compute_event_hash("rd_task_imported", task_id, None, None),
            )
        elif result.status_changed:
            entry = TimelineEntryIn(
                tipo_evento=TimelineEventType.status_changed.value,
                descricao="Atualização via sincronização RD Station",
                criado_por=actor.id,
                status_anterior=result.previous_status,
                status_novo=result.new_status,
                usuario_nome=RD_SYNC_ACTOR,
                meta={"rd_task_id": task_id},
                event_hash=compute_event_hash(
                    "rd_task_status",
                    task_id,
                    f"{result.previous_status}>{result.new_status}",
                    task.get("done_date") or task.get("updated_at"),
                ),
            )
        else:
            return "updated"

        demanda_historico.append(db, demanda.id, empresa.id, entry)
        return "imported" if created else "updated"
