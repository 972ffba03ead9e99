"""empresa rd organization name snapshot

Revision ID: 0004_empresa_rd_org_name
Revises: 0003_rd_sync_supplements
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op

revision = "0004_empresa_rd_org_name"
down_revision = "0003_rd_sync_supplements"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

def upgrade() -> None:
    op.add_column("empresas", sa.Column("rd_station_org_name_snapshot", sa.String(200), nullable=True))

def downgrade() -> None:
    op.drop_column("empresas", "rd_station_org_name_snapshot")
