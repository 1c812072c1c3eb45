from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from supermart.app.models.audit import AuditLog
from supermart.app.models.shift import Shift, ShiftStatus


def _plain(value: Any) -> Any:
    # Money stays a string so the log never rounds through float
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (Decimal, UUID, datetime)):
        return str(value)
    return value


def _active_shift_id(db: Session, actor_id: UUID) -> UUID | None:
    return (
        db.query(Shift.id)
        .filter(Shift.cashier_id == actor_id, Shift.status == ShiftStatus.ACTIVE)
        .limit(1)
        .scalar()
    )


def log_action(
    db: Session,
    *,
    action: str,
    entity: str,
    ref: str,
    actor_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
    shift_id: UUID | None = None,
) -> AuditLog:
    """Queue an audit entry in the caller's transaction (no commit here).

    When *shift_id* is not given, the actor's active shift is attached.
    """
    if shift_id is None and actor_id is not None:
        shift_id = _active_shift_id(db, actor_id)
    entry = AuditLog(
        action=action,
        entity=entity,
        ref=ref,
        actor_id=actor_id,
        shift_id=shift_id,
        details=_plain(details) if details is not None else None,
        ip_address=ip_address,
    )
    db.add(entry)
    return entry
