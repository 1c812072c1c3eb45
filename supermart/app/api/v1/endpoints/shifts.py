from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from supermart.app.api.deps import client_ip, get_current_active_admin, get_current_user
from supermart.app.core.database import get_db
from supermart.app.models.user import User
from supermart.app.schemas.shift import (
    ShiftEndRequest,
    ShiftForceEndRequest,
    ShiftListOut,
    ShiftOut,
    ShiftStartRequest,
)
from supermart.app.services import shifts as shift_service

router = APIRouter()


# ─── Own shift ────────────────────────────────────────────────────────────────


@router.post("/start", response_model=ShiftOut, status_code=status.HTTP_201_CREATED)
def start_shift(
    payload: ShiftStartRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ShiftOut:
    try:
        return shift_service.start_shift(
            db, current_user, payload.opening_cash, client_ip(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/end", response_model=ShiftOut)
def end_shift(
    payload: ShiftEndRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ShiftOut:
    try:
        return shift_service.end_shift(
            db, current_user, payload.closing_cash, payload.notes, client_ip(request)
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/current", response_model=ShiftOut | None)
def current_shift(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ShiftOut | None:
    """The caller's active shift, or null when none is open."""
    return shift_service.get_active_shift(db, current_user.id)


@router.get("", response_model=ShiftListOut)
def list_shifts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    return shift_service.list_shifts(
        db, current_user, page=page, limit=limit, start_date=start_date, end_date=end_date
    )


# ─── Admin ────────────────────────────────────────────────────────────────────


@router.get("/active", response_model=list[ShiftOut])
def active_shifts(
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> list[ShiftOut]:
    return shift_service.list_active_shifts(db)


@router.post("/{shift_id}/end", response_model=ShiftOut)
def force_end_shift(
    shift_id: UUID,
    request: Request,
    payload: ShiftForceEndRequest | None = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> ShiftOut:
    payload = payload or ShiftForceEndRequest()
    try:
        return shift_service.force_end_shift(
            db,
            shift_id,
            admin,
            closing_cash=payload.closing_cash,
            notes=payload.notes,
            ip_address=client_ip(request),
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
