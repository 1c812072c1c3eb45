from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from supermart.app.api.deps import client_ip, get_current_active_admin, get_current_user
from supermart.app.core.database import get_db
from supermart.app.models.product import Category, Product
from supermart.app.models.user import User
from supermart.app.schemas.inventory import (
    CategoryCreate,
    CategoryOut,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    RestockRequest,
    StockStatusOut,
    VariantCreate,
)
from supermart.app.services import inventory as inventory_service

router = APIRouter()


def _get_product_or_404(db: Session, product_id: UUID) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Product not found"
        )
    return product


# ─── Categories ───────────────────────────────────────────────────────────────


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> list[Category]:
    return db.query(Category).order_by(Category.name).all()


@router.post(
    "/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED
)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> Category:
    if db.query(Category).filter(Category.name == payload.name).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Category already exists"
        )
    category = Category(name=payload.name, description=payload.description)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


# ─── Products ─────────────────────────────────────────────────────────────────


@router.get("/products", response_model=list[ProductOut])
def list_products(
    search: str | None = None,
    category_id: UUID | None = None,
    active_only: bool = True,
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> list[Product]:
    query = db.query(Product)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.code.ilike(pattern)))
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name).all()


@router.post(
    "/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED
)
def create_product(
    payload: ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> Product:
    try:
        return inventory_service.create_product(db, payload, admin.id, client_ip(request))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> Product:
    return _get_product_or_404(db, product_id)


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> Product:
    _get_product_or_404(db, product_id)
    try:
        return inventory_service.update_product(
            db, product_id, payload, admin.id, client_ip(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/products/{product_id}/variants",
    response_model=ProductOut,
    status_code=status.HTTP_201_CREATED,
)
def add_variant(
    product_id: UUID,
    payload: VariantCreate,
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> Product:
    _get_product_or_404(db, product_id)
    try:
        return inventory_service.add_variant(db, product_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/products/{product_id}/restock", response_model=ProductOut)
def restock_product(
    product_id: UUID,
    payload: RestockRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> Product:
    _get_product_or_404(db, product_id)
    try:
        return inventory_service.restock(
            db,
            product_id,
            payload.quantity,
            admin.id,
            size=payload.size,
            ip_address=client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ─── Stock status ─────────────────────────────────────────────────────────────


@router.get("/stock-status", response_model=StockStatusOut)
def stock_status(
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> dict:
    return inventory_service.get_stock_status_summary(db)
