import json
import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# engine in rdsync.db is built at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rdsync.auth.tokens import issue_access_token
from rdsync.config import Settings
from rdsync.db import get_db
from rdsync.main import create_app
from rdsync.models import Base
from rdsync.models.empresa import Empresa
from rdsync.models.enums import AppRole, SinistroPrioridade, SinistroStatus
from rdsync.models.sinistro import SinistroVida
from rdsync.models.user import User
from rdsync.rd.signature import SIGNATURE_HEADER, sign_body

WEBHOOK_SECRET = "whsec_test"
RD_TOKEN = "rd_token_test"

@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        rd_webhook_secret=WEBHOOK_SECRET,
        rd_api_token=RD_TOKEN,
        rd_api_max_attempts=3,
        rate_limit_enabled=False,
        log_json=False,
        log_level="WARNING",
    )

@pytest.fixture()
def db_session() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # let SAVEPOINT work on pysqlite
    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn) -> None:  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def app(settings: Settings, db_session: Session):
    app = create_app(settings)

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return app

@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)

def auth(user: User, settings: Settings) -> dict[str, str]:
    return {"authorization": f"bearer {issue_access_token(user.id, settings)}"}

def signed_headers(raw: bytes, secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    return {"content-type": "application/json", SIGNATURE_HEADER: sign_body(secret, raw)}

def post_webhook(client: TestClient, payload: dict, secret: str = WEBHOOK_SECRET):
    raw = json.dumps(payload).encode("utf-8")
    return client.post("/webhooks/rd/sinistros", content=raw, headers=signed_headers(raw, secret))

def deal_event(
    deal_id: str,
    stage_order: int | None,
    stage_name: str | None = None,
    event_uuid: str | None = None,
    event_type: str = "crm_deal_stage_changed",
    owner: dict | None = None,
    updated_at: str = "2026-10-19T12:00:00Z",
) -> dict:
    deal: dict = {"_id": deal_id, "name": f"Sinistro {deal_id}", "updated_at": updated_at}
    if stage_order is not None or stage_name is not None:
        deal["deal_stage"] = {
            "_id": f"stage_{stage_order}_{stage_name or ''}",
            "name": stage_name,
            "order": stage_order,
        }
    if owner is not None:
        deal["user"] = owner
    return {
        "event_uuid": event_uuid or f"evt_{uuid.uuid4().hex}",
        "event_type": event_type,
        "event_timestamp": "2026-10-19T12:00:01Z",
        "entity": "deal",
        "entity_id": deal_id,
        "data": {"deal": deal},
    }

def make_user(
    db: Session,
    role: AppRole,
    empresa_id: uuid.UUID | None = None,
    nome: str | None = None,
) -> User:
    u = User(
        email=f"{role.value}+{uuid.uuid4().hex[:8]}@example.com",
        nome_completo=nome or role.value,
        role=role,
        empresa_id=empresa_id,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u

def make_sinistro(
    db: Session,
    empresa: Empresa,
    criado_por: User,
    status: SinistroStatus = SinistroStatus.em_andamento,
    rd_deal_id: str | None = None,
    age: timedelta = timedelta(hours=2),
) -> SinistroVida:
    s = SinistroVida(
        empresa_id=empresa.id,
        criado_por=criado_por.id,
        beneficiario_nome="Maria Teste",
        tipo_sinistro="morte_natural",
        prioridade=SinistroPrioridade.alta,
        valor_estimado=Decimal("1000.50"),
        status=status,
        rd_deal_id=rd_deal_id,
        created_at=datetime.now(timezone.utc) - age,
    )
    db.add(s)
    db.commit()
    db.refresh(s)
    return s

@pytest.fixture()
def empresa(db_session: Session) -> Empresa:
    e = Empresa(nome="Empresa Teste", rd_station_organization_id="rd_org_1", rd_station_enabled=True)
    db_session.add(e)
    db_session.commit()
    db_session.refresh(e)
    return e

@pytest.fixture()
def other_empresa(db_session: Session) -> Empresa:
    e = Empresa(nome="Outra Empresa", rd_station_organization_id="rd_org_2", rd_station_enabled=True)
    db_session.add(e)
    db_session.commit()
    db_session.refresh(e)
    return e

@pytest.fixture()
def vizio_user(db_session: Session) -> User:
    return make_user(db_session, AppRole.admin_vizio, nome="Equipe Vizio")

@pytest.fixture()
def empresa_admin(db_session: Session, empresa: Empresa) -> User:
    return make_user(db_session, AppRole.admin_empresa, empresa_id=empresa.id, nome="RH Admin")

@pytest.fixture()
def viewer(db_session: Session, empresa: Empresa) -> User:
    return make_user(db_session, AppRole.visualizador, empresa_id=empresa.id)

@pytest.fixture()
def sinistro(db_session: Session, empresa: Empresa, empresa_admin: User) -> SinistroVida:
    return make_sinistro(db_session, empresa, empresa_admin, rd_deal_id="D1")

class FakeRDClient:
    """Stands in for RDStationClient; records calls, serves canned data."""

    def __init__(self):
        self.pipelines: list[dict] = []
        self.stages: list[dict] = []
        self.deals: dict[str, dict] = {}
        self.org_deals: list[dict] = []
        self.tasks: dict[str, list[dict]] = {}
        self.organizations: list[dict] = []
        self.organizations_have_more = False
        self.calls: list[tuple] = []
        self.fail_with: Exception | None = None
        self.failing_task_deals: set[str] = set()
        self.next_deal_id = "deal_new_1"
        self.closed = False

    def _record(self, *call) -> None:
        self.calls.append(call)
        if self.fail_with is not None:
            raise self.fail_with

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def list_pipelines(self, organization_id=None):
        self._record("list_pipelines", organization_id)
        return list(self.pipelines)

    def list_stages(self, pipeline_id=None, organization_id=None):
        self._record("list_stages", pipeline_id, organization_id)
        if pipeline_id is None:
            return list(self.stages)
        return [s for s in self.stages if s.get("deal_pipeline_id") in (None, pipeline_id)]

    def get_deal(self, deal_id):
        self._record("get_deal", deal_id)
        return self.deals[deal_id]

    def create_deal(self, body):
        self._record("create_deal", body)
        return {"_id": self.next_deal_id, **body}

    def update_deal(self, deal_id, body):
        self._record("update_deal", deal_id, body)
        return {"_id": deal_id, **body}

    def list_deals(self, organization_id, limit=200):
        self._record("list_deals", organization_id)
        return list(self.org_deals)

    def list_tasks(self, deal_id, limit=200):
        self._record("list_tasks", deal_id)
        if deal_id in self.failing_task_deals:
            from rdsync.rd.client import RDStationError

            raise RDStationError("tasks unavailable", status_code=500)
        return list(self.tasks.get(deal_id, []))

    def list_organizations(self, query=None, page=1, limit=50):
        self._record("list_organizations", query, page)
        orgs = [o for o in self.organizations if not query or query.lower() in o.get("name", "").lower()]
        return orgs, self.organizations_have_more

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

@pytest.fixture()
def fake_rd() -> FakeRDClient:
    return FakeRDClient()

def sinistro_pipeline(pipeline_id: str = "pipe_sin", stage_count: int = 6) -> dict:
    names = [
        "Abertura de Sinistro",
        "Documentação",
        "Em Andamento",
        "Enviado à Operadora",
        "Aprovado",
        "Concluído",
    ]
    return {
        "_id": pipeline_id,
        "name": "Gestão de Sinistro",
        "deal_stages": [
            {"_id": f"{pipeline_id}_s{i}", "name": names[i % len(names)], "position": i, "deal_pipeline_id": pipeline_id}
            for i in range(stage_count)
        ],
    }
