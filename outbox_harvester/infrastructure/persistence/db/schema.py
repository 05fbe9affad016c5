"""
Определения схемы ORM SQLAlchemy для outbox.
"""

import uuid
from datetime import datetime, timezone
from uuid import UUID as UUIDType

from sqlalchemy import DateTime, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from outbox_harvester.entity.outbox import OutboxStatus
from outbox_harvester.infrastructure.persistence.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Outbox(Base):
    __tablename__ = "outbox"

    id: Mapped[UUIDType] = mapped_column(
        "outbox_id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True
    )
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[OutboxStatus] = mapped_column(
        Enum(OutboxStatus), nullable=False, default=OutboxStatus.PENDING, index=True
    )
    trace_context: Mapped[str | None] = mapped_column(
        "traceparent", String(255), nullable=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )
