from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supermart.app.api.deps import client_ip, get_current_active_admin, get_current_user
from supermart.app.core.database import get_db
from supermart.app.models.bill import Bill, BillStatus
from supermart.app.models.user import User
from supermart.app.schemas.bill import (
    BillCancelRequest,
    BillCreateRequest,
    BillListOut,
    BillOut,
    BillPreviewOut,
    BillPreviewRequest,
    LoyaltyStatusOut,
)
from supermart.app.services import bills as bill_service
from supermart.app.services.loyalty import loyalty_status

router = APIRouter()


# ─── Checkout ─────────────────────────────────────────────────────────────────


@router.post("/preview", response_model=BillPreviewOut)
def preview_bill(
    payload: BillPreviewRequest,
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> dict:
    """Totals for the current cart, including any loyalty discount."""
    try:
        return bill_service.preview_bill(db, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("", response_model=BillOut, status_code=status.HTTP_201_CREATED)
def create_bill(
    payload: BillCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Bill:
    try:
        return bill_service.create_bill(db, payload, current_user, client_ip(request))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another till took this bill number. Please submit the bill again.",
        )


@router.get("/customer/{phone}/purchase-count", response_model=LoyaltyStatusOut)
def customer_purchase_count(
    phone: str,
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> dict:
    loyalty = loyalty_status(db, phone)
    if loyalty is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required"
        )
    return asdict(loyalty)


# ─── History ──────────────────────────────────────────────────────────────────


@router.get("", response_model=BillListOut)
def list_bills(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    cashier_id: UUID | None = None,
    bill_status: BillStatus | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> dict:
    return bill_service.list_bills(
        db,
        page=page,
        limit=limit,
        search=search,
        start_date=start_date,
        end_date=end_date,
        cashier_id=cashier_id,
        status=bill_status,
    )


@router.get("/{bill_id}", response_model=BillOut)
def get_bill(
    bill_id: UUID,
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> Bill:
    try:
        return bill_service.get_bill(db, bill_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ─── Admin ────────────────────────────────────────────────────────────────────


@router.post("/{bill_id}/cancel", response_model=BillOut)
def cancel_bill(
    bill_id: UUID,
    request: Request,
    payload: BillCancelRequest | None = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> Bill:
    try:
        return bill_service.cancel_bill(
            db,
            bill_id,
            admin,
            reason=payload.reason if payload else None,
            ip_address=client_ip(request),
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{bill_id}")
def delete_bill(
    bill_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> dict[str, str]:
    try:
        bill_service.delete_bill(db, bill_id, admin, client_ip(request))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"detail": "Bill deleted successfully"}
