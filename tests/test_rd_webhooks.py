import json

from sqlalchemy import func, select

from rdsync.models.enums import SinistroStatus, SyncStatus, WebhookEventStatus
from rdsync.models.sinistro_timeline import SinistroTimeline
from rdsync.models.webhook_event import WebhookEvent
from rdsync.rd.signature import TOKEN_HEADER
from rdsync.rd.timeline import format_sla
from tests.conftest import WEBHOOK_SECRET, deal_event, post_webhook, signed_headers

URL = "/webhooks/rd/sinistros"

def count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))

def ledger_row(db, event_id: str) -> WebhookEvent:
    db.expire_all()
    return db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event_id))

def timeline_rows(db, sinistro_id) -> list[SinistroTimeline]:
    return list(db.scalars(select(SinistroTimeline).where(SinistroTimeline.sinistro_id == sinistro_id)))

def test_stage_change_updates_sinistro_and_writes_timeline(client, db_session, sinistro):
    r = post_webhook(client, deal_event("D1", 3, event_uuid="E1"))
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "updated": True, "sinistroId": str(sinistro.id)}

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.enviado_operadora
    assert sinistro.rd_stage_id == "stage_3_"
    assert sinistro.rd_sync_status == SyncStatus.ok
    assert sinistro.rd_last_sync_at is not None
    assert sinistro.concluido_em is None

    rows = timeline_rows(db_session, sinistro.id)
    assert len(rows) == 1
    row = rows[0]
    assert row.tipo_evento == "status_changed"
    assert row.status_anterior == "em_andamento"
    assert row.status_novo == "enviado_operadora"
    assert row.source == "rd_station"
    assert row.rd_event_id == "E1"
    assert row.usuario_nome == "RD Station"
    assert row.criado_por == sinistro.criado_por
    assert row.meta["rd_deal_id"] == "D1"
    assert row.event_hash

    assert ledger_row(db_session, "E1").status == WebhookEventStatus.ok.value

def test_replayed_event_is_a_duplicate_with_no_writes(client, db_session, sinistro):
    payload = deal_event("D1", 3, event_uuid="E1")
    assert post_webhook(client, payload).status_code == 200

    db_session.refresh(sinistro)
    synced_at = sinistro.rd_last_sync_at

    r = post_webhook(client, payload)
    assert r.status_code == 200
    assert r.json() == {"success": True, "duplicate": True}

    db_session.refresh(sinistro)
    assert sinistro.rd_last_sync_at == synced_at
    assert count(db_session, SinistroTimeline) == 1
    assert count(db_session, WebhookEvent) == 1

def test_unknown_deal_is_ignored(client, db_session, sinistro):
    r = post_webhook(client, deal_event("D9", 3, event_uuid="E9"))
    assert r.status_code == 200
    assert r.json() == {"success": True, "ignored": True, "reason": "no_sinistro"}

    row = ledger_row(db_session, "E9")
    assert row.status == WebhookEventStatus.ignored.value
    assert row.error == "no_sinistro"
    assert row.processed_at is not None
    assert count(db_session, SinistroTimeline) == 0

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.em_andamento

def test_ignored_event_is_not_retried(client, db_session):
    payload = deal_event("D9", 3, event_uuid="E9")
    post_webhook(client, payload)
    r = post_webhook(client, payload)
    assert r.json() == {"success": True, "duplicate": True}

def test_non_deal_event_is_ignored(client, db_session):
    payload = {"event_uuid": "C1", "event_type": "crm_contact_created", "data": {"contact": {"_id": "c1"}}}
    r = post_webhook(client, payload)
    assert r.status_code == 200
    assert r.json() == {"success": True, "ignored": True, "reason": "unhandled_type"}
    assert ledger_row(db_session, "C1").status == WebhookEventStatus.ignored.value

def test_label_overrides_ordinal(client, db_session, sinistro):
    r = post_webhook(client, deal_event("D1", 1, stage_name="Pago"))
    assert r.status_code == 200

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.pago
    assert sinistro.concluido_em is not None
    # fixture sinistro is two hours old
    assert 119 <= sinistro.sla_minutos <= 121

    row = timeline_rows(db_session, sinistro.id)[0]
    assert row.status_novo == "pago"
    assert row.meta["sla_minutos"] == sinistro.sla_minutos
    assert row.meta["sla_human"] == format_sla(sinistro.sla_minutos * 60)

def test_owner_is_recorded_and_named_in_timeline(client, db_session, sinistro):
    owner = {"_id": "u9", "name": "Corretor Fulano"}
    post_webhook(client, deal_event("D1", 3, owner=owner))

    db_session.refresh(sinistro)
    assert sinistro.rd_owner_id == "u9"
    assert timeline_rows(db_session, sinistro.id)[0].usuario_nome == "Corretor Fulano"

def test_same_state_under_new_event_changes_nothing(client, db_session, sinistro):
    post_webhook(client, deal_event("D1", 3, event_uuid="E1"))
    r = post_webhook(client, deal_event("D1", 3, event_uuid="E2"))

    assert r.status_code == 200
    assert r.json()["updated"] is False
    assert count(db_session, SinistroTimeline) == 1
    assert ledger_row(db_session, "E2").status == WebhookEventStatus.ok.value

def test_status_change_whose_fact_is_already_in_the_timeline_fails(client, db_session, sinistro):
    post_webhook(client, deal_event("D1", 3, event_uuid="E1"))

    # local state drifted back; CRM redelivers the same fact with a fresh uuid
    sinistro.status = SinistroStatus.em_andamento
    db_session.commit()

    r = post_webhook(client, deal_event("D1", 3, event_uuid="E2"))
    assert r.status_code == 500

    row = ledger_row(db_session, "E2")
    assert row.status == WebhookEventStatus.error.value
    assert row.error.startswith("TimelineConflict:")
    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.em_andamento
    assert count(db_session, SinistroTimeline) == 1

def without_timestamps(payload: dict) -> dict:
    del payload["event_timestamp"]
    del payload["data"]["deal"]["updated_at"]
    return payload

def test_returning_to_a_stage_without_timestamps_writes_a_row_per_change(client, db_session, sinistro):
    for event_id, order in (("A", 3), ("B", 2), ("C", 3)):
        r = post_webhook(client, without_timestamps(deal_event("D1", order, event_uuid=event_id)))
        assert r.status_code == 200, r.text
        assert ledger_row(db_session, event_id).status == WebhookEventStatus.ok.value

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.enviado_operadora
    rows = sorted(timeline_rows(db_session, sinistro.id), key=lambda r: r.rd_event_id)
    assert [(r.rd_event_id, r.status_anterior, r.status_novo) for r in rows] == [
        ("A", "em_andamento", "enviado_operadora"),
        ("B", "enviado_operadora", "em_andamento"),
        ("C", "em_andamento", "enviado_operadora"),
    ]
    assert len({r.event_hash for r in rows}) == 3

def test_terminal_status_is_not_left_by_a_webhook(client, db_session, sinistro):
    post_webhook(client, deal_event("D1", 4, stage_name="Negado", event_uuid="E1"))
    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.negado
    concluido_em = sinistro.concluido_em
    sla = sinistro.sla_minutos

    # echo of our own push: stage 4 under a neutral label
    r = post_webhook(client, deal_event("D1", 4, stage_name="Decisão", event_uuid="E2", updated_at="2026-10-19T13:00:00Z"))
    assert r.status_code == 200

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.negado
    assert sinistro.concluido_em == concluido_em
    assert sinistro.sla_minutos == sla
    assert sinistro.rd_stage_id == "stage_4_Decisão"
    assert sinistro.rd_sync_status == SyncStatus.ok
    assert [r.status_novo for r in timeline_rows(db_session, sinistro.id)] == ["negado"]
    assert ledger_row(db_session, "E2").status == WebhookEventStatus.ok.value

def test_non_terminal_row_carries_elapsed_time(client, db_session, sinistro):
    post_webhook(client, deal_event("D1", 3))
    row = timeline_rows(db_session, sinistro.id)[0]
    assert "sla_minutos" not in row.meta
    # fixture sinistro is two hours old
    assert row.meta["sla_human"] in ("1h 59m", "2h 0m", "2h 1m")

def test_deal_without_stage_only_touches_sync_fields(client, db_session, sinistro):
    r = post_webhook(client, deal_event("D1", None, event_type="crm_deal_updated"))
    assert r.status_code == 200
    assert r.json()["updated"] is False

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.em_andamento
    assert sinistro.rd_sync_status == SyncStatus.ok

def test_failure_marks_event_error_and_retry_succeeds(client, db_session, sinistro, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr("rdsync.rd.webhook_processor.reconcile", boom)
    payload = deal_event("D1", 3, event_uuid="E1")

    r = post_webhook(client, payload)
    assert r.status_code == 500
    assert r.json()["detail"] == "webhook_processing_failed"

    row = ledger_row(db_session, "E1")
    assert row.status == WebhookEventStatus.error.value
    assert row.error == "RuntimeError: database went away"
    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.em_andamento
    assert count(db_session, SinistroTimeline) == 0

    monkeypatch.undo()
    r = post_webhook(client, payload)
    assert r.status_code == 200
    assert r.json()["updated"] is True

    assert ledger_row(db_session, "E1").status == WebhookEventStatus.ok.value
    assert count(db_session, SinistroTimeline) == 1
    assert count(db_session, WebhookEvent) == 1

def test_bad_signature_is_unauthorized(client, db_session, sinistro):
    r = post_webhook(client, deal_event("D1", 3), secret="wrong_secret")
    assert r.status_code == 401
    assert r.json() == {"detail": "unauthorized"}
    assert count(db_session, WebhookEvent) == 0

def test_missing_signature_is_unauthorized(client, db_session):
    raw = json.dumps(deal_event("D1", 3)).encode()
    r = client.post(URL, content=raw, headers={"content-type": "application/json"})
    assert r.status_code == 401

def test_token_header_and_query_token_are_accepted(client, db_session, sinistro):
    raw = json.dumps(deal_event("D1", 3)).encode()
    r = client.post(URL, content=raw, headers={TOKEN_HEADER: WEBHOOK_SECRET})
    assert r.status_code == 200

    raw = json.dumps(deal_event("D1", 4)).encode()
    r = client.post(URL, params={"token": WEBHOOK_SECRET}, content=raw)
    assert r.status_code == 200

    db_session.refresh(sinistro)
    assert sinistro.status == SinistroStatus.aprovado

def test_no_configured_secret_rejects_everything(app, client, settings, db_session, sinistro):
    app.state.settings = settings.model_copy(update={"rd_webhook_secret": None})
    raw = json.dumps(deal_event("D1", 3)).encode()

    r = client.post(
        URL,
        params={"token": ""},
        content=raw,
        headers={**signed_headers(raw, ""), TOKEN_HEADER: ""},
    )
    assert r.status_code == 401
    r = post_webhook(client, deal_event("D1", 3))
    assert r.status_code == 401
    assert count(db_session, WebhookEvent) == 0

def test_invalid_json_is_rejected(client, db_session):
    raw = b"{not json"
    r = client.post(URL, content=raw, headers=signed_headers(raw))
    assert r.status_code == 400
    assert count(db_session, WebhookEvent) == 0

def test_missing_event_uuid_is_rejected(client, db_session):
    payload = deal_event("D1", 3)
    del payload["event_uuid"]
    r = post_webhook(client, payload)
    assert r.status_code == 400
    assert count(db_session, WebhookEvent) == 0

def test_deal_event_without_deal_id_is_rejected(client, db_session, sinistro):
    payload = deal_event("D1", 3)
    del payload["data"]["deal"]["_id"]
    r = post_webhook(client, payload)
    assert r.status_code == 400
    assert count(db_session, WebhookEvent) == 0
