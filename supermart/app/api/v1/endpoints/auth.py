from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from supermart.app.api.deps import client_ip, oauth2_scheme
from supermart.app.core.database import get_db
from supermart.app.core.errors import SignInRefused
from supermart.app.core.security import revoke_token
from supermart.app.middleware.rate_limit import InMemoryRateLimiter
from supermart.app.schemas.user import Token
from supermart.app.services import auth as auth_service
from supermart.app.services.shifts import find_active_shift

router = APIRouter()

# Counter terminals share few IPs; five tries a minute per terminal
_login_limiter = InMemoryRateLimiter(window_seconds=60, max_attempts=5)


@router.post("/login/access-token", response_model=Token)
def login_access_token(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> dict:
    """Sign in with a username or employee ID.

    The response tells the till whether the cashier already has a shift open.
    """
    ip = client_ip(request) or "unknown"
    _login_limiter.check(ip)

    try:
        employee = auth_service.authenticate(db, form_data.username, form_data.password, ip)
    except SignInRefused as e:
        headers = {"WWW-Authenticate": "Bearer"} if e.status_code == 401 else None
        raise HTTPException(status_code=e.status_code, detail=str(e), headers=headers)

    shift = find_active_shift(db, employee.id)
    return {
        "access_token": auth_service.issue_token(employee),
        "token_type": "bearer",
        "employee_id": employee.employee_id,
        "full_name": employee.full_name,
        "role": employee.role,
        "active_shift_id": shift.id if shift else None,
    }


@router.post("/logout")
def logout(token: str = Depends(oauth2_scheme)) -> dict[str, str]:
    revoke_token(token)
    return {"detail": "Logged out successfully"}
