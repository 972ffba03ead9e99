"""Inbound RD Station webhook shapes, validated once at the edge."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rdsync.errors import ValidationException

DEAL_EVENT_TYPES = frozenset({"crm_deal_created", "crm_deal_updated", "crm_deal_stage_changed"})

class _RDModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

class RDDealStage(_RDModel):
    id: str = Field(alias="_id", min_length=1)
    name: str | None = None
    order: int | None = None

class RDUser(_RDModel):
    id: str = Field(alias="_id", min_length=1)
    name: str | None = None
    email: str | None = None

class RDOrganization(_RDModel):
    id: str = Field(alias="_id")
    name: str | None = None

class RDCustomField(_RDModel):
    label: str
    value: Any = None

class RDDeal(_RDModel):
    id: str = Field(alias="_id", min_length=1)
    name: str | None = None
    deal_stage: RDDealStage | None = None
    user: RDUser | None = None
    organization: RDOrganization | None = None
    custom_fields: list[RDCustomField] = Field(default_factory=list)
    updated_at: str | None = None

class DealEventData(_RDModel):
    deal: RDDeal
    previous_data: dict[str, Any] | None = None

class WebhookEnvelope(_RDModel):
    event_uuid: str = Field(min_length=1)
    event_type: str = Field(min_length=1)
    event_timestamp: str | None = None
    entity: str | None = None
    entity_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_deal_event(self) -> bool:
        return self.event_type in DEAL_EVENT_TYPES

class DealEvent(BaseModel):
    envelope: WebhookEnvelope
    data: DealEventData

    @property
    def deal(self) -> RDDeal:
        return self.data.deal

    @property
    def external_updated_at(self) -> str | None:
        return self.deal.updated_at or self.envelope.event_timestamp

def _errors(e: ValidationError) -> list[dict[str, Any]]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]

def parse_envelope(raw_body: bytes) -> WebhookEnvelope:
    try:
        return WebhookEnvelope.model_validate_json(raw_body)
    except ValidationError as e:
        raise ValidationException("invalid webhook payload", details={"errors": _errors(e)}) from e

def parse_deal_event(envelope: WebhookEnvelope) -> DealEvent:
    try:
        data = DealEventData.model_validate(envelope.data)
    except ValidationError as e:
        raise ValidationException(
            "deal event without a valid data.deal", field="data.deal", details={"errors": _errors(e)}
        ) from e
    return DealEvent(envelope=envelope, data=data)
