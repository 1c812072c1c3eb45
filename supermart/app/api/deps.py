from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from supermart.app.core.database import get_db
from supermart.app.core.security import decode_access_token
from supermart.app.models.user import RoleEnum, User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/access-token")


def _token_rejected() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token is not valid",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    """The signed-in employee behind the bearer token.

    A token stops working once the employee's role or badge ID changes, so a
    demoted admin has to sign in again.
    """
    try:
        claims = decode_access_token(token)
        employee = db.get(User, UUID(claims["sub"]))
    except (JWTError, KeyError, ValueError):
        raise _token_rejected()

    if employee is None:
        raise _token_rejected()
    issued_for = (claims.get("employee_id"), claims.get("role"))
    if issued_for != (employee.employee_id, employee.role.value):
        raise _token_rejected()
    if not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Employee account is deactivated"
        )
    return employee


def get_current_active_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role is not RoleEnum.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
