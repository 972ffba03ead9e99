"""
Applies CRM-proposed state to a local entity.

Pure with respect to I/O: mutates the ORM object in place and reports what
changed. The caller owns the session and the commit, so the entity update
lands in the same transaction as its timeline row and ledger finalisation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from rdsync.models.enums import StatusDemanda, SinistroStatus, SyncStatus
from rdsync.rd.stages import SINISTRO_TERMINAL_STATUSES

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class EntityFields:
    """Column names a reconcilable entity exposes. None means unsupported."""

    status: str
    status_type: type[Enum]
    terminal_statuses: frozenset[str]
    # a terminal status cannot be left by a sync
    terminal_is_final: bool = True
    created_at: str = "created_at"
    completed_at: str | None = "concluido_em"
    sla_minutes: str | None = "sla_minutos"
    external_id: str | None = "rd_deal_id"
    stage_id: str | None = None
    pipeline_id: str | None = None
    owner_id: str | None = None
    org_id: str | None = None
    last_sync_at: str | None = "rd_last_sync_at"
    sync_status: str | None = "rd_sync_status"
    sync_error: str | None = "rd_sync_error"

SINISTRO_FIELDS = EntityFields(
    status="status",
    status_type=SinistroStatus,
    terminal_statuses=SINISTRO_TERMINAL_STATUSES,
    stage_id="rd_stage_id",
    pipeline_id="rd_pipeline_id",
    owner_id="rd_owner_id",
    org_id="rd_org_id",
)

DEMANDA_FIELDS = EntityFields(
    status="status",
    status_type=StatusDemanda,
    terminal_statuses=frozenset({StatusDemanda.concluido.value}),
    # rd tasks can be reopened
    terminal_is_final=False,
    external_id="rd_task_id",
)

@dataclass(frozen=True)
class ProposedChange:
    status: str | None = None
    external_id: str | None = None
    stage_id: str | None = None
    pipeline_id: str | None = None
    owner_id: str | None = None
    org_id: str | None = None
    # set when the sync attempt itself failed
    sync_error: str | None = None

@dataclass
class ReconcileResult:
    changed: dict[str, Any] = field(default_factory=dict)
    previous_status: str | None = None
    new_status: str | None = None
    status_changed: bool = False
    elapsed_minutes: int | None = None
    # proposed status refused because the entity is already terminal
    blocked_status: str | None = None

    @property
    def updated(self) -> bool:
        return bool(self.changed)

def as_utc(value: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes; they are stored as utc
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def status_value(value: Any) -> str | None:
    if value is None:
        return None
    return value.value if isinstance(value, Enum) else str(value)

def _set(entity: Any, column: str | None, value: Any, result: ReconcileResult) -> None:
    if column is None or value is None:
        return
    if getattr(entity, column) == value:
        return
    setattr(entity, column, value)
    result.changed[column] = value

def reconcile(
    entity: Any,
    proposed: ProposedChange,
    fields: EntityFields,
    now: datetime | None = None,
    record_sync: bool = True,
) -> ReconcileResult:
    """Move `entity` toward `proposed`.

    Idempotent: a second call with the same proposal changes nothing. The
    completion timestamp and SLA are written once, on first entry into a
    terminal status, and never rewritten by later events. When the fields
    mark terminal statuses as final, a status that is already terminal is
    kept and the proposal is reported in `blocked_status`; the other
    fields and the sync bookkeeping are still applied.
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    result = ReconcileResult()

    current = status_value(getattr(entity, fields.status))
    result.previous_status = current
    result.new_status = current

    target = proposed.status
    if (
        target is not None
        and target != current
        and fields.terminal_is_final
        and current in fields.terminal_statuses
    ):
        logger.debug(
            "%s stays %s: refusing %s from sync", type(entity).__name__, current, target
        )
        result.blocked_status = target
    elif target is not None and target != current:
        try:
            typed = fields.status_type(target)
        except ValueError:
            logger.warning("ignoring unknown status %r for %s", target, type(entity).__name__)
        else:
            setattr(entity, fields.status, typed)
            result.changed[fields.status] = typed.value
            result.new_status = typed.value
            result.status_changed = True

            if typed.value in fields.terminal_statuses and fields.completed_at:
                if getattr(entity, fields.completed_at) is None:
                    setattr(entity, fields.completed_at, now)
                    result.changed[fields.completed_at] = now

                    created = as_utc(getattr(entity, fields.created_at, None))
                    if created is not None:
                        minutes = round((now - created).total_seconds() / 60)
                        result.elapsed_minutes = minutes
                        if fields.sla_minutes:
                            setattr(entity, fields.sla_minutes, minutes)
                            result.changed[fields.sla_minutes] = minutes

    _set(entity, fields.external_id, proposed.external_id, result)
    _set(entity, fields.stage_id, proposed.stage_id, result)
    _set(entity, fields.pipeline_id, proposed.pipeline_id, result)
    _set(entity, fields.owner_id, proposed.owner_id, result)
    _set(entity, fields.org_id, proposed.org_id, result)

    if record_sync:
        if fields.last_sync_at:
            setattr(entity, fields.last_sync_at, now)
        failed = proposed.sync_error is not None
        if fields.sync_status:
            setattr(entity, fields.sync_status, SyncStatus.error if failed else SyncStatus.ok)
        if fields.sync_error:
            setattr(entity, fields.sync_error, proposed.sync_error[:1000] if failed else None)

    return result
