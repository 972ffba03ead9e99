"""
Outbound sync of a sinistro with its RD deal.

push: local -> RD. Creates the deal on first sync, updates it afterwards,
and records the ids/stage that RD now holds.
pull: RD -> local. Reads the linked deal and maps its stage back through
the same reconciler and timeline writer the webhook path uses.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from rdsync.config import Settings
from rdsync.errors import ErrorCode, UpstreamException, ValidationException
from rdsync.models.empresa import Empresa
from rdsync.models.enums import SinistroPrioridade, TimelineEventType, TimelineSource
from rdsync.models.rd_sinistro_config import EmpresaRdSinistroConfig
from rdsync.models.sinistro import SinistroVida
from rdsync.models.user import User
from rdsync.rd.client import RDStationClient, RDStationError, stage_position
from rdsync.rd.payloads import RDDeal
from rdsync.rd.reconcile import SINISTRO_FIELDS, ProposedChange, reconcile, status_value
from rdsync.rd.stages import SINISTRO_STAGE_MAP
from rdsync.rd.timeline import TimelineEntryIn, status_change_entry
from rdsync.rd.webhook_processor import sinistro_timeline

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Settings], RDStationClient]

_RATING = {
    SinistroPrioridade.critica: 5,
    SinistroPrioridade.alta: 4,
    SinistroPrioridade.media: 3,
}

def require_rd_token(settings: Settings) -> None:
    if not settings.rd_api_token:
        raise ValidationException(
            "RD Station API token is not configured",
            error_code=ErrorCode.rd_token_not_configured,
        )

def deal_rating(prioridade: SinistroPrioridade | str | None) -> int:
    try:
        return _RATING.get(SinistroPrioridade(prioridade), 2)
    except ValueError:
        return 2

def deal_custom_fields(sinistro: SinistroVida, include_id: bool = False) -> list[dict[str, Any]]:
    valor = sinistro.valor_estimado
    fields = [
        {"label": "Tipo Sinistro", "value": sinistro.tipo_sinistro},
        {"label": "Status Sistema", "value": status_value(sinistro.status)},
        {"label": "Valor Estimado", "value": float(valor) if valor is not None else 0},
    ]
    if include_id:
        fields.append({"label": "Sinistro ID", "value": str(sinistro.id)})
    return fields

def deal_name(sinistro: SinistroVida) -> str:
    return f"Sinistro - {sinistro.beneficiario_nome}"

class SinistroSyncService:
    def __init__(self, settings: Settings, client_factory: ClientFactory = RDStationClient):
        self.settings = settings
        self.client_factory = client_factory

    # entry point used by the route

    def run(self, db: Session, sinistro: SinistroVida, actor: User, action: str = "push") -> dict[str, Any]:
        require_rd_token(self.settings)
        if action not in ("push", "pull"):
            raise ValidationException(f"unknown action: {action}", field="action")

        client = self.client_factory(self.settings)
        try:
            if action == "pull":
                return self.pull(db, client, sinistro, actor)
            return self.push(db, client, sinistro, actor)
        except RDStationError as e:
            self._record_failure(db, sinistro, str(e))
            raise UpstreamException(
                "RD Station sync failed",
                details={"status_code": e.status_code, "message": str(e)},
            ) from e
        finally:
            client.close()

    def _record_failure(self, db: Session, sinistro: SinistroVida, message: str) -> None:
        db.rollback()
        logger.warning("rd sync of sinistro %s failed: %s", sinistro.id, message)
        reconcile(sinistro, ProposedChange(sync_error=message), SINISTRO_FIELDS)
        db.commit()

    # org / pipeline resolution

    def resolve_org_id(self, db: Session, sinistro: SinistroVida) -> str:
        if sinistro.rd_org_id:
            return sinistro.rd_org_id
        empresa = db.get(Empresa, sinistro.empresa_id)
        if empresa is not None and empresa.rd_station_organization_id:
            return empresa.rd_station_organization_id
        raise ValidationException(
            "no RD Station organization linked to this empresa",
            error_code=ErrorCode.rd_org_not_linked,
        )

    def resolve_pipeline(
        self,
        db: Session,
        client: RDStationClient,
        empresa_id,
        org_id: str | None,
    ) -> tuple[dict, list[dict]]:
        pipelines = client.list_pipelines(org_id)
        if not pipelines and org_id:
            pipelines = client.list_pipelines()

        config = db.scalar(
            select(EmpresaRdSinistroConfig).where(EmpresaRdSinistroConfig.empresa_id == empresa_id)
        )
        pipeline = None
        if config is not None:
            pipeline = next((p for p in pipelines if p.get("_id") == config.sinistro_pipeline_id), None)
        if pipeline is None:
            pipeline = next((p for p in pipelines if "sinistro" in (p.get("name") or "").lower()), None)
        if pipeline is None:
            raise ValidationException(
                f'pipeline "{self.settings.rd_sinistro_pipeline_name}" not found in RD Station',
                error_code=ErrorCode.rd_pipeline_not_found,
            )

        stages = pipeline.get("deal_stages") or client.list_stages(pipeline["_id"], org_id)
        stages = sorted(stages, key=stage_position)
        if not stages:
            raise ValidationException(
                f"pipeline {pipeline['_id']} has no stages",
                error_code=ErrorCode.rd_pipeline_not_found,
            )
        return pipeline, stages

    # push

    def push(self, db: Session, client: RDStationClient, sinistro: SinistroVida, actor: User) -> dict[str, Any]:
        org_id = self.resolve_org_id(db, sinistro)
        pipeline, stages = self.resolve_pipeline(db, client, sinistro.empresa_id, org_id)

        idx = SINISTRO_STAGE_MAP.stage_index_for(status_value(sinistro.status), len(stages))
        target_stage = stages[idx]

        deal_id = sinistro.rd_deal_id
        created = deal_id is None
        if created:
            resp = client.create_deal(
                {
                    "name": deal_name(sinistro),
                    "organization_id": org_id,
                    "deal_pipeline_id": pipeline["_id"],
                    "deal_stage_id": target_stage["_id"],
                    "rating": deal_rating(sinistro.prioridade),
                    "custom_fields": deal_custom_fields(sinistro, include_id=True),
                }
            )
            deal_id = (resp or {}).get("_id") or (resp or {}).get("id")
            if not deal_id:
                raise RDStationError("RD Station did not return a deal id")
        else:
            client.update_deal(
                deal_id,
                {
                    "name": deal_name(sinistro),
                    "deal_stage_id": target_stage["_id"],
                    "custom_fields": deal_custom_fields(sinistro),
                },
            )

        reconcile(
            sinistro,
            ProposedChange(
                external_id=deal_id,
                stage_id=target_stage["_id"],
                pipeline_id=pipeline["_id"],
                org_id=org_id,
            ),
            SINISTRO_FIELDS,
        )
        sinistro_timeline.append(
            db,
            sinistro.id,
            sinistro.empresa_id,
            TimelineEntryIn(
                tipo_evento=TimelineEventType.sync.value,
                descricao="Deal criado no RD Station CRM" if created else "Sincronizado com RD Station CRM",
                criado_por=actor.id,
                source=TimelineSource.sistema,
                usuario_nome=actor.display_name,
                meta={"rd_deal_id": deal_id, "created": created},
            ),
        )
        db.commit()

        logger.info("pushed sinistro %s to rd deal %s (created=%s)", sinistro.id, deal_id, created)
        return {"success": True, "dealId": deal_id, "created": created}

    # pull

    def pull(self, db: Session, client: RDStationClient, sinistro: SinistroVida, actor: User) -> dict[str, Any]:
        if not sinistro.rd_deal_id:
            raise ValidationException(
                "sinistro is not linked to an RD deal",
                error_code=ErrorCode.rd_not_linked,
            )

        raw = client.get_deal(sinistro.rd_deal_id)
        try:
            deal = RDDeal.model_validate(raw)
        except ValidationError as e:
            raise RDStationError(f"unexpected deal payload: {e.error_count()} errors") from e

        now = datetime.now(timezone.utc)
        proposed_status = None
        stage_id = None
        if deal.deal_stage is not None:
            proposed_status = SINISTRO_STAGE_MAP.status_for_stage(
                deal.deal_stage.order, deal.deal_stage.name, status_value(sinistro.status)
            )
            stage_id = deal.deal_stage.id

        result = reconcile(
            sinistro,
            ProposedChange(
                status=proposed_status,
                stage_id=stage_id,
                owner_id=deal.user.id if deal.user else None,
                org_id=deal.organization.id if deal.organization else None,
            ),
            SINISTRO_FIELDS,
            now=now,
        )

        if result.status_changed:
            sinistro_timeline.append(
                db,
                sinistro.id,
                sinistro.empresa_id,
                status_change_entry(
                    status_anterior=result.previous_status,
                    status_novo=result.new_status,
                    descricao=f'Status atualizado para "{result.new_status}" a partir do RD Station',
                    criado_por=actor.id,
                    actor_name=actor.display_name,
                    source=TimelineSource.sistema,
                    created_at=sinistro.created_at,
                    now=now,
                    sla_minutes=sinistro.sla_minutos,
                    rd_deal_id=deal.id,
                    rd_stage_id=stage_id,
                ),
            )
        db.commit()

        return {
            "success": True,
            "dealId": deal.id,
            "updated": result.updated,
            "status": result.new_status,
        }
