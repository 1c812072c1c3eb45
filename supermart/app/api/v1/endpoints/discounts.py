from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from supermart.app.api.deps import client_ip, get_current_active_admin, get_current_user
from supermart.app.core.database import get_db
from supermart.app.models.discount import Discount
from supermart.app.models.user import User
from supermart.app.schemas.discount import DiscountCreate, DiscountOut, DiscountUpdate
from supermart.app.services import discounts as discount_service

router = APIRouter()


@router.get("", response_model=list[DiscountOut])
def list_discounts(
    active_only: bool = False,
    product_id: UUID | None = None,
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> list[Discount]:
    query = db.query(Discount)
    if active_only:
        query = query.filter(Discount.is_active.is_(True))
    if product_id:
        query = query.filter(Discount.product_id == product_id)
    return query.order_by(Discount.created_at.desc()).all()


@router.post("", response_model=DiscountOut, status_code=status.HTTP_201_CREATED)
def create_discount(
    payload: DiscountCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> Discount:
    try:
        return discount_service.create_discount(db, payload, admin.id, client_ip(request))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{discount_id}", response_model=DiscountOut)
def update_discount(
    discount_id: UUID,
    payload: DiscountUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> Discount:
    """Change or deactivate (``is_active: false``) a discount."""
    if not db.query(Discount).filter(Discount.id == discount_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Discount not found"
        )
    try:
        return discount_service.update_discount(
            db, discount_id, payload, admin.id, client_ip(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/applicable/{product_id}", response_model=list[DiscountOut])
def applicable_discounts(
    product_id: UUID,
    quantity: Decimal = Query(Decimal("1"), gt=0),
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> list[Discount]:
    return discount_service.applicable_discounts(db, product_id, quantity)
