from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from rdsync.config import Settings, get_settings
from rdsync.db import get_db
from rdsync.errors import ValidationException
from rdsync.ratelimit import rate_limit
from rdsync.rd.webhook_processor import SinistroWebhookProcessor, WebhookProcessingError

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

def get_sinistro_webhook_processor(
    settings: Settings = Depends(get_settings),
) -> SinistroWebhookProcessor:
    return SinistroWebhookProcessor(settings)

@router.post("/rd/sinistros")
async def rd_sinistro_webhook(
    request: Request,
    db: Session = Depends(get_db),
    processor: SinistroWebhookProcessor = Depends(get_sinistro_webhook_processor),
    _: None = Depends(
        rate_limit(
            "webhooks:rd",
            limit_setting="rate_limit_webhooks_per_min",
            window_seconds=60,
        )
    ),
):
    # signature is over the exact bytes on the wire
    raw = await request.body()

    auth = processor.authenticate(raw, request.headers, request.query_params)
    if not auth.valid:
        raise HTTPException(status_code=401, detail="unauthorized")

    try:
        envelope, event = processor.parse(raw)
    except ValidationException as e:
        raise HTTPException(status_code=400, detail=e.message)

    payload = json.loads(raw)
    try:
        return processor.process(db, envelope, event, raw_payload=payload)
    except WebhookProcessingError:
        raise HTTPException(status_code=500, detail="webhook_processing_failed")
