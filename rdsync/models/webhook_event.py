import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from rdsync.models.base import Base, JSONType

class WebhookEvent(Base):
    __tablename__ = "rd_webhook_events"
    # the only serialization point between concurrent deliveries
    __table_args__ = (
        sa.UniqueConstraint("provider", "event_id", name="uq_rd_webhook_events_provider_event_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    provider: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    event_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    event_type: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    received_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )
    processed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="pending")
    error: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
