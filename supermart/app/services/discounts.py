from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from supermart.app.models.discount import Discount
from supermart.app.models.product import Product
from supermart.app.schemas.discount import DiscountCreate, DiscountUpdate
from supermart.app.services.audit import log_action
from supermart.app.services.bill_engine import (
    DiscountKind,
    DiscountSpec,
    line_discount_amount,
    make_discount,
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_spec(discount: Discount) -> DiscountSpec:
    return make_discount(discount.kind, discount.value)


def is_applicable(
    discount: Discount, quantity: Decimal, now: datetime, pending: int = 0
) -> bool:
    """Whether *discount* may go on a line of *quantity* at *now*.

    *pending* counts uses already taken by earlier lines of the same bill,
    which are not in ``usage_count`` until the bill is stored.
    """
    if not discount.is_active:
        return False
    starts_at = _as_utc(discount.starts_at)
    ends_at = _as_utc(discount.ends_at)
    if starts_at is not None and now < starts_at:
        return False
    if ends_at is not None and now > ends_at:
        return False
    if quantity < discount.min_quantity:
        return False
    limit = discount.usage_limit
    if limit is not None and discount.usage_count + pending >= limit:
        return False
    return True


def applicable_discounts(
    db: Session,
    product_id: UUID,
    quantity: Decimal = Decimal("1"),
    now: datetime | None = None,
    pending_usage: dict[UUID, int] | None = None,
) -> list[Discount]:
    """Active discounts for a product (its own plus storewide ones)."""
    pending_usage = pending_usage or {}
    now = now or datetime.now(timezone.utc)
    candidates = (
        db.query(Discount)
        .filter(
            Discount.is_active.is_(True),
            or_(Discount.product_id == product_id, Discount.product_id.is_(None)),
        )
        .order_by(Discount.created_at)
        .all()
    )
    return [
        d for d in candidates if is_applicable(d, quantity, now, pending_usage.get(d.id, 0))
    ]


def find_best_discount(
    db: Session,
    product_id: UUID,
    quantity: Decimal,
    rate: Decimal,
    now: datetime | None = None,
    pending_usage: dict[UUID, int] | None = None,
) -> tuple[Discount, Decimal] | None:
    """Pick the applicable discount worth the most on this line.

    Returns the discount with its amount for the line, or None.
    """
    base_amount = quantity * rate
    best: tuple[Discount, Decimal] | None = None
    for discount in applicable_discounts(db, product_id, quantity, now, pending_usage):
        amount = line_discount_amount(to_spec(discount), quantity, base_amount)
        if amount > 0 and (best is None or amount > best[1]):
            best = (discount, amount)
    return best


def get_discount_for_line(
    db: Session,
    discount_id: UUID,
    product_id: UUID,
    quantity: Decimal,
    now: datetime | None = None,
    pending: int = 0,
) -> Discount:
    """Load an explicitly chosen discount and check it may be used on this line."""
    now = now or datetime.now(timezone.utc)
    discount = db.query(Discount).filter(Discount.id == discount_id).first()
    if not discount:
        raise ValueError(f"Discount not found: {discount_id}")
    if discount.product_id is not None and discount.product_id != product_id:
        raise ValueError(f"Discount '{discount.name}' does not apply to this product")
    if not is_applicable(discount, quantity, now, pending):
        raise ValueError(f"Discount '{discount.name}' is not currently applicable")
    return discount


def record_usage(db: Session, usage: dict[UUID, int]) -> None:
    """Bump usage counters. Callers do this only once a bill is accepted."""
    for discount_id, count in usage.items():
        discount = db.query(Discount).filter(Discount.id == discount_id).first()
        if discount:
            discount.usage_count += count


def release_usage(db: Session, usage: dict[UUID, int]) -> None:
    """Give uses back when a bill is voided; counters never drop below zero."""
    for discount_id, count in usage.items():
        discount = db.query(Discount).filter(Discount.id == discount_id).first()
        if discount:
            discount.usage_count = max(discount.usage_count - count, 0)


# ─── Catalogue maintenance ───────────────────────────────────────────────────


def create_discount(
    db: Session,
    payload: DiscountCreate,
    user_id: UUID,
    ip_address: str | None = None,
) -> Discount:
    if payload.product_id is not None:
        if not db.query(Product).filter(Product.id == payload.product_id).first():
            raise ValueError("Product not found")

    discount = Discount(**payload.model_dump())
    db.add(discount)
    db.flush()

    log_action(
        db,
        actor_id=user_id,
        action="DISCOUNT_CREATED",
        entity="discounts",
        ref=str(discount.id),
        ip_address=ip_address,
        details={
            "name": discount.name,
            "kind": discount.kind.value,
            "value": str(discount.value),
            "product_id": str(discount.product_id) if discount.product_id else None,
        },
    )
    db.commit()
    db.refresh(discount)
    return discount


def update_discount(
    db: Session,
    discount_id: UUID,
    payload: DiscountUpdate,
    user_id: UUID,
    ip_address: str | None = None,
) -> Discount:
    discount = db.query(Discount).filter(Discount.id == discount_id).first()
    if not discount:
        raise ValueError("Discount not found")

    nullable = {"starts_at", "ends_at", "usage_limit"}
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in nullable
    }
    value = changes.get("value", discount.value)
    if discount.kind is DiscountKind.PERCENTAGE and value > 100:
        raise ValueError("Percentage discount cannot exceed 100")
    for field, new_value in changes.items():
        setattr(discount, field, new_value)

    log_action(
        db,
        actor_id=user_id,
        action="DISCOUNT_UPDATED",
        entity="discounts",
        ref=str(discount.id),
        ip_address=ip_address,
        details={k: str(v) for k, v in changes.items()},
    )
    db.commit()
    db.refresh(discount)
    return discount
