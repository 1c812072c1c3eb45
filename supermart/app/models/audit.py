from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from supermart.app.core.database import Base

JSONType = JSON().with_variant(JSONB, "postgresql")


class AuditLog(Base):
    """One recorded store event: a sale, a void, a restock, a login.

    ``entity`` names what was touched (``bills``, ``products``, ``shifts``,
    ...) and ``ref`` is the reference a store manager searches by, such as a
    bill number or product id. Events done during a cashier's shift carry
    that shift so a till can be reconciled against its history.
    """

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    ref: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    shift_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("shifts.id"), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_audit_entity_ref", "entity", "ref"),
        Index("ix_audit_actor_created", "actor_id", "created_at"),
        Index("ix_audit_shift", "shift_id"),
    )
