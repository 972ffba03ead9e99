"""
Append-only timeline writer.

A unique `event_hash` (and, for webhook rows, `rd_event_id`) makes the
write idempotent: replaying the same external fact hits the constraint
and is reported as an already-written success.
"""
from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rdsync.models.enums import TimelineEventType, TimelineSource
from rdsync.rd.reconcile import as_utc

logger = logging.getLogger(__name__)

def compute_event_hash(*parts: str | None) -> str:
    """sha256 over the identity of an external fact.

    Callers pass the event type, the external entity id, the stage id and
    the external updated-at, in that order. Missing parts hash as "".
    """
    joined = "|".join("" if p is None else str(p) for p in parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()

def format_sla(seconds: float | None) -> str:
    if seconds is None or seconds < 0:
        return "-"
    total_minutes = int(seconds // 60)
    days, rem = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rem, 60)
    if days:
        return f"{days}d {hours:02d}h {minutes:02d}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"

@dataclass
class TimelineEntryIn:
    tipo_evento: str
    descricao: str
    criado_por: uuid.UUID
    source: TimelineSource = TimelineSource.sistema
    status_anterior: str | None = None
    status_novo: str | None = None
    usuario_nome: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    event_hash: str | None = None
    rd_event_id: str | None = None

def status_change_entry(
    *,
    status_anterior: str | None,
    status_novo: str | None,
    descricao: str,
    criado_por: uuid.UUID,
    actor_name: str,
    source: TimelineSource,
    created_at: datetime | None,
    now: datetime,
    sla_minutes: int | None = None,
    event_hash: str | None = None,
    rd_event_id: str | None = None,
    **extra: Any,
) -> TimelineEntryIn:
    """Status row shared by the webhook, pull and local paths.

    The actor name and the elapsed time are frozen into the row here. A
    terminal transition reports its recorded SLA; any other transition
    reports the time elapsed since the entity was opened.
    """
    meta: dict[str, Any] = {k: v for k, v in extra.items() if v is not None}
    if sla_minutes is not None:
        meta["sla_minutos"] = sla_minutes
        meta["sla_human"] = format_sla(sla_minutes * 60)
    else:
        created = as_utc(created_at)
        meta["sla_human"] = format_sla((as_utc(now) - created).total_seconds()) if created else "-"

    return TimelineEntryIn(
        tipo_evento=TimelineEventType.status_changed.value,
        descricao=descricao,
        criado_por=criado_por,
        source=source,
        status_anterior=status_anterior,
        status_novo=status_novo,
        usuario_nome=actor_name,
        meta=meta,
        event_hash=event_hash,
        rd_event_id=rd_event_id,
    )

@dataclass(frozen=True)
class TimelineWriteResult:
    created: bool
    entry: Any = None

class TimelineWriter:
    def __init__(self, model: type, parent_field: str, supports_rd_event_id: bool = True):
        self.model = model
        self.parent_field = parent_field
        self.supports_rd_event_id = supports_rd_event_id

    def append(
        self,
        db: Session,
        parent_id: uuid.UUID,
        empresa_id: uuid.UUID,
        entry: TimelineEntryIn,
    ) -> TimelineWriteResult:
        """Insert one row inside a savepoint. Does not commit."""
        values: dict[str, Any] = {
            self.parent_field: parent_id,
            "empresa_id": empresa_id,
            "tipo_evento": entry.tipo_evento,
            "descricao": entry.descricao,
            "status_anterior": entry.status_anterior,
            "status_novo": entry.status_novo,
            "source": entry.source.value,
            "criado_por": entry.criado_por,
            "usuario_nome": entry.usuario_nome,
            "meta": entry.meta or None,
            "event_hash": entry.event_hash,
        }
        if self.supports_rd_event_id:
            values["rd_event_id"] = entry.rd_event_id

        row = self.model(**values)
        try:
            with db.begin_nested():
                db.add(row)
        except IntegrityError:
            if entry.event_hash is None and entry.rd_event_id is None:
                raise
            logger.info(
                "timeline entry already written for %s %s (hash=%s)",
                self.parent_field,
                parent_id,
                entry.event_hash,
            )
            return TimelineWriteResult(created=False)

        return TimelineWriteResult(created=True, entry=row)
