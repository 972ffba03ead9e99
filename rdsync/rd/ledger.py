"""
Processed-event ledger for inbound webhooks.

Turns at-least-once delivery into effectively-once processing. The unique
constraint on (provider, event_id) decides who owns an event; nothing here
checks-then-inserts.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rdsync.models.enums import WebhookEventStatus
from rdsync.models.webhook_event import WebhookEvent

logger = logging.getLogger(__name__)

PROVIDER_RD = "rd"

_MAX_ERROR_LEN = 1000
_FINAL_OUTCOMES = {WebhookEventStatus.ok, WebhookEventStatus.ignored, WebhookEventStatus.error}

@dataclass(frozen=True)
class ClaimResult:
    duplicate: bool
    # true when a row previously finalised as error was taken over again
    retried: bool = False

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def try_claim(
    db: Session,
    provider: str,
    event_id: str,
    event_type: str | None,
    payload: dict | None,
) -> ClaimResult:
    """Insert the ledger row as `processing`, or report a duplicate.

    The claim is committed before returning so that a concurrent delivery
    of the same event hits the constraint instead of racing the business
    writes.
    """
    row = WebhookEvent(
        provider=provider,
        event_id=event_id,
        event_type=event_type,
        payload=payload,
        status=WebhookEventStatus.processing.value,
    )
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError:
        # errored rows are retriable: take them over atomically
        reclaimed = db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.provider == provider)
            .where(WebhookEvent.event_id == event_id)
            .where(WebhookEvent.status == WebhookEventStatus.error.value)
            .values(
                status=WebhookEventStatus.processing.value,
                event_type=event_type,
                payload=payload,
                error=None,
                processed_at=None,
            )
        ).rowcount
        db.commit()
        if reclaimed:
            logger.info("reclaimed errored webhook event %s/%s", provider, event_id)
            return ClaimResult(duplicate=False, retried=True)

        logger.info("duplicate webhook event %s/%s", provider, event_id)
        return ClaimResult(duplicate=True)

    db.commit()
    return ClaimResult(duplicate=False)

def mark_processed(
    db: Session,
    provider: str,
    event_id: str,
    outcome: WebhookEventStatus,
    error: str | None = None,
) -> None:
    """Finalise a claimed row and commit, together with any pending writes."""
    if outcome not in _FINAL_OUTCOMES:
        raise ValueError(f"not a final outcome: {outcome}")

    db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.provider == provider)
        .where(WebhookEvent.event_id == event_id)
        .where(WebhookEvent.status == WebhookEventStatus.processing.value)
        .values(
            status=outcome.value,
            error=error[:_MAX_ERROR_LEN] if error else None,
            # errored rows stay open for a retry
            processed_at=None if outcome == WebhookEventStatus.error else _now_utc(),
        )
    )
    db.commit()
