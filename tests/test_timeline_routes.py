from datetime import datetime, timedelta, timezone

import pytest

from rdsync.models.enums import AppRole
from rdsync.models.sinistro_timeline import SinistroTimeline
from tests.conftest import auth, make_sinistro, make_user

T0 = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

def add_row(db, sinistro, status_novo: str, minutes: int) -> SinistroTimeline:
    row = SinistroTimeline(
        sinistro_id=sinistro.id,
        empresa_id=sinistro.empresa_id,
        tipo_evento="status_changed",
        descricao=f"-> {status_novo}",
        status_novo=status_novo,
        source="rd_station",
        criado_por=sinistro.criado_por,
        created_at=T0 + timedelta(minutes=minutes),
    )
    db.add(row)
    db.commit()
    return row

@pytest.fixture()
def history(db_session, sinistro):
    add_row(db_session, sinistro, "aprovado", 30)
    add_row(db_session, sinistro, "enviado_operadora", 10)
    add_row(db_session, sinistro, "pago", 50)

def test_sinistro_timeline_is_oldest_first(client, settings, sinistro, viewer, history):
    r = client.get(f"/sinistros/{sinistro.id}/timeline", headers=auth(viewer, settings))
    assert r.status_code == 200, r.text
    body = r.json()
    assert [e["status_novo"] for e in body] == ["enviado_operadora", "aprovado", "pago"]
    assert body[0]["sinistro_id"] == str(sinistro.id)
    assert body[0]["source"] == "rd_station"

def test_sinistro_timeline_of_other_empresa_is_forbidden(client, db_session, settings, sinistro, other_empresa, history):
    outsider = make_user(db_session, AppRole.visualizador, empresa_id=other_empresa.id)
    r = client.get(f"/sinistros/{sinistro.id}/timeline", headers=auth(outsider, settings))
    assert r.status_code == 403

def test_empresa_timeline_is_newest_first_and_limited(client, settings, empresa, viewer, history):
    r = client.get(f"/empresas/{empresa.id}/sinistros/timeline", headers=auth(viewer, settings))
    assert [e["status_novo"] for e in r.json()] == ["pago", "aprovado", "enviado_operadora"]

    r = client.get(f"/empresas/{empresa.id}/sinistros/timeline?limit=1", headers=auth(viewer, settings))
    assert [e["status_novo"] for e in r.json()] == ["pago"]

def test_empresa_timeline_excludes_other_empresas(
    client, db_session, settings, empresa, other_empresa, vizio_user, history
):
    other_admin = make_user(db_session, AppRole.admin_empresa, empresa_id=other_empresa.id)
    other = make_sinistro(db_session, other_empresa, other_admin, rd_deal_id="D2")
    add_row(db_session, other, "negado", 60)

    r = client.get(f"/empresas/{empresa.id}/sinistros/timeline", headers=auth(vizio_user, settings))
    assert "negado" not in [e["status_novo"] for e in r.json()]

    r = client.get(f"/empresas/{other_empresa.id}/sinistros/timeline", headers=auth(vizio_user, settings))
    assert [e["status_novo"] for e in r.json()] == ["negado"]

def test_empresa_timeline_of_other_empresa_is_forbidden(client, settings, other_empresa, viewer):
    r = client.get(f"/empresas/{other_empresa.id}/sinistros/timeline", headers=auth(viewer, settings))
    assert r.status_code == 403

@pytest.mark.parametrize("limit", [0, 501])
def test_empresa_timeline_limit_bounds(client, settings, empresa, viewer, limit):
    r = client.get(f"/empresas/{empresa.id}/sinistros/timeline?limit={limit}", headers=auth(viewer, settings))
    assert r.status_code == 422
