"""Employee sign-in.

Cashiers sign in at the counter with either their username or the employee ID
printed on their badge. Repeated wrong passwords lock the account for
``LOCKOUT_MINUTES``; every attempt, good or bad, lands in the audit log.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from supermart.app.core.config import settings
from supermart.app.core.errors import AccountLocked, InactiveEmployee, InvalidCredentials
from supermart.app.core.security import create_access_token, verify_password
from supermart.app.models.user import User
from supermart.app.services.audit import log_action

logger = logging.getLogger(__name__)


def find_employee(db: Session, identifier: str) -> User | None:
    """Match a username (case-insensitive) or an exact employee ID."""
    ident = identifier.strip()
    if not ident:
        return None
    return (
        db.query(User)
        .filter(or_(func.lower(User.username) == ident.lower(), User.employee_id == ident))
        .first()
    )


def _locked_until(employee: User) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    value = employee.locked_until
    if value is not None and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _refuse(
    db: Session,
    employee: User | None,
    identifier: str,
    reason: str,
    ip_address: str | None,
) -> None:
    log_action(
        db,
        action="LOGIN_BLOCKED" if reason == "account_locked" else "LOGIN_FAILED",
        entity="auth",
        ref=identifier,
        actor_id=employee.id if employee else None,
        details={"reason": reason},
        ip_address=ip_address,
    )
    db.commit()


def _register_bad_password(
    db: Session, employee: User, now: datetime, ip_address: str | None
) -> None:
    employee.failed_login_attempts = (employee.failed_login_attempts or 0) + 1
    if employee.failed_login_attempts < settings.MAX_LOGIN_ATTEMPTS:
        return
    employee.locked_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
    logger.warning(
        "Employee %s (%s) locked after %s failed sign-ins",
        employee.username,
        employee.employee_id,
        employee.failed_login_attempts,
    )
    log_action(
        db,
        action="ACCOUNT_LOCKED",
        entity="employees",
        ref=employee.employee_id,
        actor_id=employee.id,
        details={"failed_attempts": employee.failed_login_attempts},
        ip_address=ip_address,
    )


def authenticate(
    db: Session,
    identifier: str,
    password: str,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> User:
    """Check an employee's credentials and return the employee.

    Raises ``AccountLocked``, ``InvalidCredentials`` or ``InactiveEmployee``.
    The refusal is audited and committed before the exception leaves.
    """
    now = now or datetime.now(timezone.utc)
    employee = find_employee(db, identifier)

    if employee is not None:
        locked_until = _locked_until(employee)
        if locked_until and now < locked_until:
            _refuse(db, employee, identifier, "account_locked", ip_address)
            raise AccountLocked(int((locked_until - now).total_seconds() // 60) + 1)
        if locked_until:
            employee.failed_login_attempts = 0
            employee.locked_until = None

    if employee is None or not verify_password(password, employee.hashed_password):
        if employee is not None:
            _register_bad_password(db, employee, now, ip_address)
        _refuse(db, employee, identifier, "invalid_credentials", ip_address)
        raise InvalidCredentials()

    if not employee.is_active:
        _refuse(db, employee, identifier, "inactive_employee", ip_address)
        raise InactiveEmployee()

    employee.failed_login_attempts = 0
    employee.locked_until = None
    log_action(
        db,
        action="LOGIN_SUCCESS",
        entity="auth",
        ref=employee.employee_id,
        actor_id=employee.id,
        details={"username": employee.username, "role": employee.role},
        ip_address=ip_address,
    )
    db.commit()
    return employee


def issue_token(employee: User) -> str:
    """Bearer token carrying the employee's role and badge ID."""
    return create_access_token(
        subject=str(employee.id),
        claims={"role": employee.role.value, "employee_id": employee.employee_id},
    )
