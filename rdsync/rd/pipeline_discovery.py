"""
Finds the sinistro pipeline in an RD account and stores the per-empresa
pipeline/stage choice used by outbound sync.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rdsync.config import Settings
from rdsync.errors import ErrorCode, ValidationException
from rdsync.models.empresa import Empresa
from rdsync.models.rd_sinistro_config import EmpresaRdSinistroConfig
from rdsync.rd.client import RDStationClient, stage_pipeline_id, stage_position

logger = logging.getLogger(__name__)

ACTIONS = ("list", "discover", "save", "get")

# small unscoped responses are usually already filtered by rd
_SCOPED_STAGE_LIMIT = 20

def _norm(value: Any) -> str:
    return str(value or "").strip().lower()

def _brief(item: dict | None) -> dict | None:
    if item is None:
        return None
    return {"id": item.get("_id"), "name": item.get("name")}

def pick_pipeline(pipelines: list[dict], preferred_name: str) -> dict | None:
    target = _norm(preferred_name)
    for match in (
        lambda p: _norm(p.get("name")) == target,
        lambda p: "sinistro" in _norm(p.get("name")),
        lambda p: "vida" in _norm(p.get("name")),
    ):
        found = next((p for p in pipelines if match(p)), None)
        if found is not None:
            return found
    return None

def pick_stages(stages: list[dict]) -> tuple[dict | None, dict | None, dict | None]:
    """(initial, in progress, concluded) out of an ordered stage list."""
    inicial = (
        next((s for s in stages if _norm(s.get("name")) == "abertura de sinistro"), None)
        or next((s for s in stages if "abertura" in _norm(s.get("name"))), None)
        or (stages[0] if stages else None)
    )
    andamento = next(
        (s for s in stages if "andamento" in _norm(s.get("name")) or "analise" in _norm(s.get("name"))),
        None,
    )
    concluido = next((s for s in stages if "conclu" in _norm(s.get("name"))), None)
    return inicial, andamento, concluido

def config_to_dict(config: EmpresaRdSinistroConfig) -> dict[str, Any]:
    def pair(id_: str | None, name: str | None) -> dict | None:
        return {"id": id_, "name": name} if id_ else None

    return {
        "pipeline": pair(config.sinistro_pipeline_id, config.sinistro_pipeline_name),
        "stageInicial": pair(config.sinistro_stage_inicial_id, config.sinistro_stage_inicial_name),
        "stageEmAndamento": pair(config.sinistro_stage_em_andamento_id, config.sinistro_stage_em_andamento_name),
        "stageConcluido": pair(config.sinistro_stage_concluido_id, config.sinistro_stage_concluido_name),
    }

class PipelineDiscovery:
    def __init__(self, settings: Settings, client: RDStationClient):
        self.settings = settings
        self.client = client

    def _pipelines(self, org_id: str | None) -> list[dict]:
        pipelines = self.client.list_pipelines(org_id)
        # some accounts ignore org scoping and answer empty
        if not pipelines and org_id:
            pipelines = self.client.list_pipelines()
        return pipelines

    def _stages(self, org_id: str | None, pipeline_id: str | None = None) -> list[dict]:
        stages = self.client.list_stages(pipeline_id, org_id)
        if not stages and (pipeline_id or org_id):
            stages = self.client.list_stages(None, org_id if pipeline_id else None)
        return stages

    def list_all(self, org_id: str | None) -> dict[str, Any]:
        pipelines = self._pipelines(org_id)
        stages = self._stages(org_id)
        logger.info("rd account has %d pipelines and %d stages", len(pipelines), len(stages))
        return {
            "success": True,
            "pipelines": [_brief(p) for p in pipelines],
            "stages": [
                {
                    "id": s.get("_id"),
                    "name": s.get("name"),
                    "pipelineId": stage_pipeline_id(s),
                    "position": stage_position(s),
                }
                for s in stages
            ],
        }

    def discover(self, db: Session, empresa: Empresa, org_id: str | None) -> dict[str, Any]:
        pipelines = self._pipelines(org_id)
        pipeline = pick_pipeline(pipelines, self.settings.rd_sinistro_pipeline_name)
        if pipeline is None:
            raise ValidationException(
                f'pipeline "{self.settings.rd_sinistro_pipeline_name}" not found in RD Station',
                error_code=ErrorCode.rd_pipeline_not_found,
                details={"availablePipelines": [_brief(p) for p in pipelines]},
            )

        all_stages = self._stages(org_id, pipeline.get("_id"))
        scoped = [
            s
            for s in all_stages
            if stage_pipeline_id(s) == pipeline.get("_id") or len(all_stages) <= _SCOPED_STAGE_LIMIT
        ]
        stages = sorted(scoped, key=stage_position)

        inicial, andamento, concluido = pick_stages(stages)
        if inicial is None:
            raise ValidationException(
                "no stages found in the selected pipeline",
                error_code=ErrorCode.rd_pipeline_not_found,
            )

        config = self._upsert(db, empresa.id, pipeline, inicial, andamento, concluido)
        logger.info(
            "empresa %s uses rd pipeline %s (inicial=%s)",
            empresa.id,
            pipeline.get("_id"),
            inicial.get("_id"),
        )
        return {
            "success": True,
            "config": config_to_dict(config),
            "allStages": [_brief(s) for s in stages],
        }

    def save(
        self,
        db: Session,
        empresa: Empresa,
        org_id: str | None,
        pipeline_id: str,
        stage_inicial_id: str,
        stage_em_andamento_id: str | None = None,
        stage_concluido_id: str | None = None,
    ) -> dict[str, Any]:
        pipelines = self._pipelines(org_id)
        pipeline = next((p for p in pipelines if p.get("_id") == pipeline_id), {"_id": pipeline_id})
        stages = self._stages(org_id, pipeline_id)
        by_id = {s.get("_id"): s for s in stages}

        def stage(id_: str | None) -> dict | None:
            if not id_:
                return None
            return by_id.get(id_, {"_id": id_})

        config = self._upsert(
            db,
            empresa.id,
            pipeline,
            stage(stage_inicial_id),
            stage(stage_em_andamento_id),
            stage(stage_concluido_id),
        )
        return {"success": True, "config": config_to_dict(config)}

    def _upsert(
        self,
        db: Session,
        empresa_id: uuid.UUID,
        pipeline: dict,
        inicial: dict,
        andamento: dict | None,
        concluido: dict | None,
    ) -> EmpresaRdSinistroConfig:
        config = db.scalar(
            select(EmpresaRdSinistroConfig).where(EmpresaRdSinistroConfig.empresa_id == empresa_id)
        )
        if config is None:
            config = EmpresaRdSinistroConfig(empresa_id=empresa_id)
            db.add(config)

        config.sinistro_pipeline_id = pipeline["_id"]
        config.sinistro_pipeline_name = pipeline.get("name")
        config.sinistro_stage_inicial_id = inicial["_id"]
        config.sinistro_stage_inicial_name = inicial.get("name")
        config.sinistro_stage_em_andamento_id = andamento.get("_id") if andamento else None
        config.sinistro_stage_em_andamento_name = andamento.get("name") if andamento else None
        config.sinistro_stage_concluido_id = concluido.get("_id") if concluido else None
        config.sinistro_stage_concluido_name = concluido.get("name") if concluido else None

        db.commit()
        db.refresh(config)
        return config

def get_config(db: Session, empresa_id: uuid.UUID) -> dict[str, Any]:
    config = db.scalar(
        select(EmpresaRdSinistroConfig).where(EmpresaRdSinistroConfig.empresa_id == empresa_id)
    )
    return {"success": True, "config": config_to_dict(config) if config else None}
