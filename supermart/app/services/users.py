"""Employee accounts. Every mutation is audit-logged and committed here."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from supermart.app.core.security import get_password_hash, validate_password_strength
from supermart.app.models.user import User
from supermart.app.schemas.user import UserCreate, UserUpdate
from supermart.app.services.audit import log_action


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


def create_user(
    db: Session,
    payload: UserCreate,
    admin_id: UUID | None,
    ip_address: str | None = None,
) -> User:
    """Create an employee. Raises ValueError on a weak password or duplicates."""
    error = validate_password_strength(payload.password)
    if error:
        raise ValueError(error)
    if db.query(User).filter(func.lower(User.username) == payload.username.lower()).first():
        raise ValueError("Username already exists")
    if db.query(User).filter(User.employee_id == payload.employee_id).first():
        raise ValueError("Employee ID already exists")

    user = User(
        username=payload.username,
        full_name=payload.full_name,
        employee_id=payload.employee_id,
        phone=payload.phone,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
    )
    db.add(user)
    db.flush()

    log_action(
        db,
        actor_id=admin_id,
        action="USER_CREATED",
        entity="employees",
        ref=user.employee_id,
        ip_address=ip_address,
        details={
            "username": user.username,
            "employee_id": user.employee_id,
            "role": user.role.value,
        },
    )
    db.commit()
    db.refresh(user)
    return user


def update_user(
    db: Session,
    user_id: UUID,
    payload: UserUpdate,
    admin_id: UUID,
    ip_address: str | None = None,
) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise LookupError("User not found")
    if user.id == admin_id and payload.is_active is False:
        raise ValueError("You cannot deactivate your own account")

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    for field, value in changes.items():
        setattr(user, field, value)

    log_action(
        db,
        actor_id=admin_id,
        action="USER_UPDATED",
        entity="employees",
        ref=user.employee_id,
        ip_address=ip_address,
        details={k: getattr(v, "value", v) for k, v in changes.items()},
    )
    db.commit()
    db.refresh(user)
    return user
