import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from rdsync.db import SessionLocal
from rdsync.models.empresa import Empresa
from rdsync.models.enums import AppRole, SinistroPrioridade, SinistroStatus
from rdsync.models.sinistro import SinistroVida
from rdsync.models.user import User

DEMO_RD_ORG_ID = "rd_org_demo"
DEMO_RD_DEAL_ID = "rd_deal_demo"

@dataclass
class SeedResult:
    vizio_email: str
    empresa_admin_email: str
    vizio_user_id: uuid.UUID
    empresa_id: uuid.UUID
    sinistro_id: uuid.UUID
    rd_deal_id: str

def get_or_create_empresa(db: Session, nome: str, rd_org_id: str | None) -> Empresa:
    e = db.scalar(select(Empresa).where(Empresa.nome == nome))
    if e is None:
        e = Empresa(nome=nome, rd_station_organization_id=rd_org_id, rd_station_enabled=True)
        db.add(e)
        db.flush()
    return e

def get_or_create_user(
    db: Session,
    email: str,
    nome: str,
    role: AppRole,
    empresa_id: uuid.UUID | None = None,
) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, nome_completo=nome, role=role, empresa_id=empresa_id)
        db.add(u)
        db.flush()
    elif u.role != role:
        # keep it stable if you re-run seed
        u.role = role
        db.flush()
    return u

def get_or_create_sinistro(db: Session, empresa_id: uuid.UUID, criado_por: uuid.UUID, rd_deal_id: str) -> SinistroVida:
    s = db.scalar(select(SinistroVida).where(SinistroVida.rd_deal_id == rd_deal_id))
    if s is None:
        s = SinistroVida(
            empresa_id=empresa_id,
            criado_por=criado_por,
            beneficiario_nome="Maria Demo",
            tipo_sinistro="morte_natural",
            prioridade=SinistroPrioridade.alta,
            valor_estimado=Decimal("150000.00"),
            status=SinistroStatus.em_andamento,
            rd_deal_id=rd_deal_id,
            rd_org_id=DEMO_RD_ORG_ID,
        )
        db.add(s)
        db.flush()
    return s

def seed() -> SeedResult:
    db = SessionLocal()
    try:
        empresa = get_or_create_empresa(db, "Empresa Demo", DEMO_RD_ORG_ID)
        vizio = get_or_create_user(db, "corretora@example.com", "Equipe Vizio", AppRole.admin_vizio)
        admin = get_or_create_user(
            db, "rh@example.com", "RH Empresa Demo", AppRole.admin_empresa, empresa_id=empresa.id
        )
        sinistro = get_or_create_sinistro(db, empresa.id, admin.id, DEMO_RD_DEAL_ID)

        db.commit()

        return SeedResult(
            vizio_email=vizio.email,
            empresa_admin_email=admin.email,
            vizio_user_id=vizio.id,
            empresa_id=empresa.id,
            sinistro_id=sinistro.id,
            rd_deal_id=DEMO_RD_DEAL_ID,
        )
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"empresa_id={r.empresa_id}")
    print(f"sinistro_id={r.sinistro_id}")
    print(f"rd_deal_id={r.rd_deal_id}")
    print("users:")
    print(f"  admin_vizio:   {r.vizio_email}")
    print(f"  admin_empresa: {r.empresa_admin_email}")
