from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from supermart.app.api.deps import client_ip, get_current_active_admin, get_current_user
from supermart.app.core.database import get_db
from supermart.app.models.user import User
from supermart.app.schemas.user import UserCreate, UserOut, UserUpdate
from supermart.app.services import users as user_service

router = APIRouter()


@router.get("/me", response_model=UserOut)
def read_current_user(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.get("", response_model=list[UserOut])
def list_all_users(
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> list[User]:
    return user_service.list_users(db)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_new_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> User:
    """Create an employee account. Admin only."""
    try:
        return user_service.create_user(db, payload, admin.id, client_ip(request))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{user_id}", response_model=UserOut)
def update_existing_user(
    user_id: UUID,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> User:
    try:
        return user_service.update_user(db, user_id, payload, admin.id, client_ip(request))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
