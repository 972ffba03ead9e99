"""
Inbound RD deal webhooks for sinistros.

Order of work: authenticate the raw body, validate the envelope, claim the
event in the ledger, then resolve -> map -> reconcile -> timeline, and
finalise the ledger row in the same commit as the business writes. Once
an event is claimed every failure path finalises the row to `error`.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rdsync.config import Settings
from rdsync.models.enums import TimelineSource, WebhookEventStatus
from rdsync.models.sinistro import SinistroVida
from rdsync.models.sinistro_timeline import SinistroTimeline
from rdsync.rd import ledger
from rdsync.rd.payloads import DealEvent, WebhookEnvelope, parse_deal_event, parse_envelope
from rdsync.rd.reconcile import SINISTRO_FIELDS, EntityFields, ProposedChange, reconcile, status_value
from rdsync.rd.signature import AuthResult, verify_webhook_request
from rdsync.rd.stages import SINISTRO_STAGE_MAP, StageMap
from rdsync.rd.timeline import TimelineWriter, compute_event_hash, status_change_entry

logger = logging.getLogger(__name__)

RD_ACTOR_FALLBACK = "RD Station"

sinistro_timeline = TimelineWriter(SinistroTimeline, "sinistro_id")

class WebhookProcessingError(Exception):
    """Processing failed after the event was claimed; the row is `error`."""

class TimelineConflict(Exception):
    """A claimed event changed the status but its timeline row already exists."""

class SinistroWebhookProcessor:
    def __init__(
        self,
        settings: Settings,
        stage_map: StageMap = SINISTRO_STAGE_MAP,
        fields: EntityFields = SINISTRO_FIELDS,
        timeline: TimelineWriter = sinistro_timeline,
        provider: str = ledger.PROVIDER_RD,
    ):
        self.settings = settings
        self.stage_map = stage_map
        self.fields = fields
        self.timeline = timeline
        self.provider = provider

    def authenticate(
        self,
        raw_body: bytes,
        headers: Mapping[str, str],
        query_params: Mapping[str, str],
    ) -> AuthResult:
        result = verify_webhook_request(raw_body, headers, query_params, self.settings.rd_webhook_secret)
        if not result.valid:
            logger.warning("rejected rd webhook")
        return result

    def parse(self, raw_body: bytes) -> tuple[WebhookEnvelope, DealEvent | None]:
        """Validate before any side effect. Raises ValidationException."""
        envelope = parse_envelope(raw_body)
        if envelope.is_deal_event:
            return envelope, parse_deal_event(envelope)
        return envelope, None

    def process(
        self,
        db: Session,
        envelope: WebhookEnvelope,
        event: DealEvent | None,
        raw_payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        event_id = envelope.event_uuid
        payload = raw_payload if raw_payload is not None else envelope.model_dump(mode="json")

        claim = ledger.try_claim(db, self.provider, event_id, envelope.event_type, payload)
        if claim.duplicate:
            return {"success": True, "duplicate": True}

        try:
            if event is None:
                return self._finish_ignored(db, event_id, "unhandled_type")
            return self._apply_deal_event(db, event, now or datetime.now(timezone.utc))
        except Exception as e:
            db.rollback()
            logger.exception("rd webhook %s failed", event_id)
            ledger.mark_processed(
                db,
                self.provider,
                event_id,
                WebhookEventStatus.error,
                error=f"{type(e).__name__}: {e}",
            )
            raise WebhookProcessingError(str(e)) from e

    def _finish_ignored(self, db: Session, event_id: str, reason: str) -> dict[str, Any]:
        logger.info("rd webhook %s ignored: %s", event_id, reason)
        ledger.mark_processed(db, self.provider, event_id, WebhookEventStatus.ignored, error=reason)
        return {"success": True, "ignored": True, "reason": reason}

    def _apply_deal_event(self, db: Session, event: DealEvent, now: datetime) -> dict[str, Any]:
        deal = event.deal
        event_id = event.envelope.event_uuid

        sinistro = db.scalar(select(SinistroVida).where(SinistroVida.rd_deal_id == deal.id))
        if sinistro is None:
            return self._finish_ignored(db, event_id, "no_sinistro")

        proposed_status = None
        stage_id = None
        if deal.deal_stage is not None:
            current = status_value(sinistro.status)
            proposed_status = self.stage_map.status_for_stage(
                deal.deal_stage.order, deal.deal_stage.name, current
            )
            stage_id = deal.deal_stage.id

        result = reconcile(
            sinistro,
            ProposedChange(
                status=proposed_status,
                stage_id=stage_id,
                owner_id=deal.user.id if deal.user else None,
            ),
            self.fields,
            now=now,
        )

        if result.blocked_status is not None:
            logger.info(
                "sinistro %s is %s; rd event %s proposed %s",
                sinistro.id,
                result.previous_status,
                event_id,
                result.blocked_status,
            )

        if result.status_changed:
            logger.info(
                "sinistro %s: %s -> %s via rd event %s",
                sinistro.id,
                result.previous_status,
                result.new_status,
                event_id,
            )
            # without an external timestamp the event itself is the fact
            marker = event.external_updated_at or event_id
            written = self.timeline.append(
                db,
                sinistro.id,
                sinistro.empresa_id,
                status_change_entry(
                    status_anterior=result.previous_status,
                    status_novo=result.new_status,
                    descricao=f'Status alterado para "{result.new_status}" via RD Station',
                    criado_por=sinistro.criado_por,
                    actor_name=(deal.user.name if deal.user else None) or RD_ACTOR_FALLBACK,
                    source=TimelineSource.rd_station,
                    created_at=sinistro.created_at,
                    now=now,
                    sla_minutes=sinistro.sla_minutos,
                    event_hash=compute_event_hash(event.envelope.event_type, deal.id, stage_id, marker),
                    rd_event_id=event_id,
                    rd_deal_id=deal.id,
                    rd_stage_id=stage_id,
                ),
            )
            if not written.created:
                raise TimelineConflict(
                    f"status moved {result.previous_status} -> {result.new_status} "
                    f"but the timeline already holds this change of deal {deal.id}"
                )

        ledger.mark_processed(db, self.provider, event_id, WebhookEventStatus.ok)
        return {
            "success": True,
            "updated": result.updated,
            "sinistroId": str(sinistro.id),
        }
