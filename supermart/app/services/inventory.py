from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from supermart.app.models.product import Category, Product, ProductVariant
from supermart.app.schemas.inventory import ProductCreate, ProductUpdate, VariantCreate
from supermart.app.services.audit import log_action

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

IN_STOCK = "in_stock"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"


@dataclass
class ResolvedLine:
    """Catalogue data the bill engine needs for one cart line."""

    product: Product
    variant: ProductVariant | None
    rate: Decimal
    tax_rate: Decimal

    @property
    def available(self) -> Decimal:
        return self.variant.stock if self.variant else self.product.stock


def stock_level(stock: Decimal, min_stock: Decimal) -> str:
    if stock <= ZERO:
        return OUT_OF_STOCK
    if stock <= min_stock:
        return LOW_STOCK
    return IN_STOCK


# ─── Catalogue maintenance ───────────────────────────────────────────────────


def _ensure_unique_sku(db: Session, sku: str) -> None:
    if db.query(ProductVariant).filter(ProductVariant.sku == sku).first():
        raise ValueError(f"Variant SKU '{sku}' already exists")


def create_product(
    db: Session,
    payload: ProductCreate,
    user_id: UUID,
    ip_address: str | None = None,
) -> Product:
    if not db.query(Category).filter(Category.id == payload.category_id).first():
        raise ValueError("Category not found")
    if db.query(Product).filter(Product.code == payload.code).first():
        raise ValueError(f"Product code '{payload.code}' already exists")

    product = Product(
        code=payload.code,
        name=payload.name,
        category_id=payload.category_id,
        description=payload.description,
        price=payload.price,
        tax_rate=payload.tax_rate,
        unit=payload.unit,
        stock=payload.stock,
        min_stock=payload.min_stock,
    )
    seen_sizes: set[str] = set()
    for v in payload.variants:
        if v.size in seen_sizes:
            raise ValueError(f"Duplicate variant size '{v.size}'")
        seen_sizes.add(v.size)
        _ensure_unique_sku(db, v.sku)
        product.variants.append(
            ProductVariant(size=v.size, sku=v.sku, price=v.price, stock=v.stock)
        )
    db.add(product)
    db.flush()

    log_action(
        db,
        actor_id=user_id,
        action="PRODUCT_CREATED",
        entity="products",
        ref=product.code,
        ip_address=ip_address,
        details={"code": product.code, "name": product.name, "price": str(product.price)},
    )
    db.commit()
    db.refresh(product)
    return product


def update_product(
    db: Session,
    product_id: UUID,
    payload: ProductUpdate,
    user_id: UUID,
    ip_address: str | None = None,
) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ValueError("Product not found")

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    for field, value in changes.items():
        setattr(product, field, value)

    log_action(
        db,
        actor_id=user_id,
        action="PRODUCT_UPDATED",
        entity="products",
        ref=product.code,
        ip_address=ip_address,
        details={k: str(v) for k, v in changes.items()},
    )
    db.commit()
    db.refresh(product)
    return product


def add_variant(db: Session, product_id: UUID, payload: VariantCreate) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ValueError("Product not found")
    if any(v.size == payload.size for v in product.variants):
        raise ValueError(f"Variant size '{payload.size}' already exists for {product.name}")
    _ensure_unique_sku(db, payload.sku)

    product.variants.append(
        ProductVariant(size=payload.size, sku=payload.sku, price=payload.price, stock=payload.stock)
    )
    db.commit()
    db.refresh(product)
    return product


def restock(
    db: Session,
    product_id: UUID,
    quantity: Decimal,
    user_id: UUID,
    size: str | None = None,
    ip_address: str | None = None,
) -> Product:
    """Add received goods to a product (or one of its variants)."""
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ValueError("Product not found")

    if size is not None:
        variant = next((v for v in product.variants if v.size == size), None)
        if variant is None:
            raise ValueError(f"Variant not found: {size} for product: {product.name}")
        variant.stock += quantity
        new_level = variant.stock
    else:
        product.stock += quantity
        new_level = product.stock

    log_action(
        db,
        actor_id=user_id,
        action="STOCK_RESTOCKED",
        entity="products",
        ref=product.code,
        ip_address=ip_address,
        details={"size": size, "quantity": str(quantity), "new_stock": str(new_level)},
    )
    db.commit()
    db.refresh(product)
    return product


# ─── Billing support ─────────────────────────────────────────────────────────


def resolve_line(
    db: Session, product_id: UUID, size: str | None, quantity: Decimal
) -> ResolvedLine:
    """Look up price, tax rate and stock for one cart line.

    Raises ValueError for unknown or inactive products/variants and when
    there is not enough stock.
    """
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ValueError(f"Product not found: {product_id}")
    if not product.is_active:
        raise ValueError(f"Product is not active: {product.name}")

    variant: ProductVariant | None = None
    if size is not None:
        variant = next((v for v in product.variants if v.size == size), None)
        if variant is None:
            raise ValueError(f"Variant not found: {size} for product: {product.name}")
        if not variant.is_active:
            raise ValueError(f"Variant {size} is not active for product: {product.name}")
    elif product.variants:
        raise ValueError(f"A size must be selected for product: {product.name}")

    line = ResolvedLine(
        product=product,
        variant=variant,
        rate=variant.price if variant else product.price,
        tax_rate=product.tax_rate,
    )
    if line.available < quantity:
        label = f"variant {size}" if variant else f"product: {product.name}"
        raise ValueError(
            f"Insufficient stock for {label}. "
            f"Available: {line.available}, Required: {quantity}"
        )
    return line


def _adjust_stock(line: ResolvedLine, delta: Decimal) -> Decimal:
    target = line.variant if line.variant else line.product
    target.stock += delta
    return target.stock


def decrement_stock(line: ResolvedLine, quantity: Decimal) -> str:
    """Take *quantity* out of stock and return the resulting stock level.

    A line crossing into low or out of stock is logged as a warning.
    """
    before = stock_level(line.available, line.product.min_stock)
    remaining = _adjust_stock(line, -quantity)
    after = stock_level(remaining, line.product.min_stock)
    if after != before and after != IN_STOCK:
        logger.warning(
            "Stock for %s%s is now %s (%s left)",
            line.product.name,
            f" [{line.variant.size}]" if line.variant else "",
            after,
            remaining,
        )
    return after


def return_stock(line: ResolvedLine, quantity: Decimal) -> None:
    _adjust_stock(line, quantity)


def get_stock_status_summary(db: Session) -> dict:
    """Classify every active product (and each variant) by stock level."""
    products = db.query(Product).filter(Product.is_active.is_(True)).order_by(Product.name).all()

    counts = {IN_STOCK: 0, LOW_STOCK: 0, OUT_OF_STOCK: 0}
    flagged: dict[str, list[dict]] = {LOW_STOCK: [], OUT_OF_STOCK: []}
    for product in products:
        entries = (
            [(v.size, v.stock) for v in product.variants if v.is_active]
            if product.variants
            else [(None, product.stock)]
        )
        for size, stock in entries:
            level = stock_level(stock, product.min_stock)
            counts[level] += 1
            if level in flagged:
                flagged[level].append({
                    "product_id": product.id,
                    "code": product.code,
                    "name": product.name,
                    "size": size,
                    "stock": stock,
                    "min_stock": product.min_stock,
                    "status": level,
                })

    return {
        "total_products": len(products),
        "in_stock": counts[IN_STOCK],
        "low_stock": counts[LOW_STOCK],
        "out_of_stock": counts[OUT_OF_STOCK],
        "low_stock_products": flagged[LOW_STOCK],
        "out_of_stock_products": flagged[OUT_OF_STOCK],
    }
