from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supermart.app.core.config import settings
from supermart.app.core.errors import BillingError, InvalidLineItem
from supermart.app.models.bill import Bill, BillItem, BillPayment, BillStatus
from supermart.app.models.discount import Discount
from supermart.app.models.product import Product
from supermart.app.models.shift import Shift, ShiftStatus
from supermart.app.models.user import User
from supermart.app.schemas.bill import BillCreateRequest, BillItemRequest, BillPreviewRequest
from supermart.app.services import discounts as discount_service
from supermart.app.services import shifts as shift_service
from supermart.app.services.audit import log_action
from supermart.app.services.bill_engine import (
    BillTotals,
    LineItemInput,
    LineItemResult,
    PaymentMethod,
    compute_bill_totals,
    reconcile_payment,
)
from supermart.app.services.inventory import (
    ResolvedLine,
    decrement_stock,
    resolve_line,
    return_stock,
)
from supermart.app.services.loyalty import LoyaltyStatus, loyalty_status

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# Money column scale
Q = Decimal("0.0001")
BILL_NUMBER_ATTEMPTS = 2


@dataclass
class PricedCart:
    lines: list[ResolvedLine]
    discounts: list[Discount | None]
    totals: BillTotals
    loyalty: LoyaltyStatus | None


# ─── Pricing ─────────────────────────────────────────────────────────────────


def price_cart(
    db: Session,
    items: list[BillItemRequest],
    customer_phone: str | None = None,
    now: datetime | None = None,
) -> PricedCart:
    """Resolve every cart line against the catalogue and run the bill engine.

    Shared by the preview and the bill creation path so both always agree.
    """
    now = now or datetime.now(timezone.utc)

    lines: list[ResolvedLine] = []
    chosen: list[Discount | None] = []
    inputs: list[LineItemInput] = []
    # Same product/size on several lines draws from the same stock
    reserved: dict[tuple[UUID, str | None], Decimal] = defaultdict(Decimal)
    # Uses of limited discounts taken by earlier lines of this cart
    used: dict[UUID, int] = defaultdict(int)

    for item in items:
        if item.quantity <= ZERO:
            raise InvalidLineItem("Quantity must be greater than zero")
        key = (item.product_id, item.size)
        line = resolve_line(db, item.product_id, item.size, reserved[key] + item.quantity)
        reserved[key] += item.quantity

        discount: Discount | None
        if item.discount_id is not None:
            discount = discount_service.get_discount_for_line(
                db,
                item.discount_id,
                item.product_id,
                item.quantity,
                now,
                pending=used[item.discount_id],
            )
        else:
            best = discount_service.find_best_discount(
                db, item.product_id, item.quantity, line.rate, now, used
            )
            discount = best[0] if best else None
        if discount is not None:
            used[discount.id] += 1

        lines.append(line)
        chosen.append(discount)
        inputs.append(
            LineItemInput(
                quantity=item.quantity,
                rate=line.rate,
                tax_rate=line.tax_rate,
                discount=discount_service.to_spec(discount) if discount else None,
            )
        )

    loyalty = loyalty_status(db, customer_phone)
    totals = compute_bill_totals(
        inputs,
        loyalty_eligible=bool(loyalty and loyalty.is_eligible),
        loyalty_percent=settings.LOYALTY_DISCOUNT_PERCENT,
    )
    return PricedCart(lines=lines, discounts=chosen, totals=totals, loyalty=loyalty)


def _money(amount: Decimal) -> Decimal:
    return amount.quantize(Q, rounding=ROUND_HALF_UP)


def _line_amounts(result: LineItemResult) -> dict[str, Decimal]:
    """Line money at column precision, with the stored parts adding up exactly."""
    base = _money(result.base_amount)
    discount = _money(result.discount_amount)
    tax = _money(result.tax_amount)
    return {
        "base_amount": base,
        "discount_amount": discount,
        "discounted_amount": base - discount,
        "tax_amount": tax,
        "total_amount": base - discount + tax,
    }


def _bill_amounts(totals: BillTotals) -> dict[str, Decimal]:
    """Bill totals summed from the stored lines.

    The grand total comes from the engine unchanged; round-off absorbs the
    difference left by rounding each line so ``subtotal + total_tax - loyalty + round_off``
    equals the grand total as stored.
    """
    lines = [_line_amounts(r) for r in totals.items]
    subtotal = sum((a["discounted_amount"] for a in lines), ZERO)
    total_tax = sum((a["tax_amount"] for a in lines), ZERO)
    item_discount = sum((a["discount_amount"] for a in lines), ZERO)
    loyalty = _money(totals.loyalty_discount_amount)
    grand_total = _money(totals.grand_total)
    return {
        "subtotal": subtotal,
        "total_discount": item_discount + loyalty,
        "total_tax": total_tax,
        "loyalty_discount_amount": loyalty,
        "round_off": grand_total - (subtotal + total_tax - loyalty),
        "grand_total": grand_total,
    }


def _line_fields(
    line: ResolvedLine, discount: Discount | None, result: LineItemResult
) -> dict:
    return {
        "product_id": line.product.id,
        "variant_id": line.variant.id if line.variant else None,
        "product_code": line.product.code,
        "product_name": line.product.name,
        "variant_size": line.variant.size if line.variant else None,
        "variant_sku": line.variant.sku if line.variant else None,
        "quantity": result.quantity,
        "rate": result.rate,
        "tax_rate": result.tax_rate,
        "discount_id": discount.id if discount else None,
        "discount_name": discount.name if discount else None,
        "discount_kind": discount.kind if discount else None,
        "discount_value": discount.value if discount else None,
        **_line_amounts(result),
    }


def preview_bill(db: Session, request: BillPreviewRequest) -> dict:
    """Compute what a bill would come to without storing anything."""
    cart = price_cart(db, request.items, request.customer_phone)
    totals = cart.totals
    return {
        "items": [
            _line_fields(line, discount, result)
            for line, discount, result in zip(cart.lines, cart.discounts, totals.items)
        ],
        **_bill_amounts(totals),
        "loyalty": asdict(cart.loyalty) if cart.loyalty else None,
    }


# ─── Creation ────────────────────────────────────────────────────────────────


def generate_bill_number(db: Session, now: datetime) -> str:
    """Return the next bill number for the day, e.g. BILL202610190001."""
    stem = f"{settings.BILL_NUMBER_PREFIX}{now:%Y%m%d}"
    last = (
        db.query(func.max(Bill.bill_number))
        .filter(Bill.bill_number.like(f"{stem}%"))
        .scalar()
    )
    sequence = int(last[len(stem):]) + 1 if last else 1
    return f"{stem}{sequence:04d}"


def _discount_usage(discount_ids: Iterable[UUID | None]) -> dict[UUID, int]:
    usage: dict[UUID, int] = defaultdict(int)
    for discount_id in discount_ids:
        if discount_id is not None:
            usage[discount_id] += 1
    return usage


def _insert_numbered(db: Session, bill: Bill, now: datetime) -> None:
    """Insert *bill* under the day's next number, retrying once if it is taken.

    Two tills can read the same highest number; the unique index makes the
    slower insert fail. Only the insert runs inside the savepoint, so stock,
    discount and shift changes must already be flushed.
    """
    for attempt in range(1, BILL_NUMBER_ATTEMPTS + 1):
        bill.bill_number = generate_bill_number(db, now)
        try:
            with db.begin_nested():
                db.add(bill)
                db.flush()
            return
        except IntegrityError:
            if attempt == BILL_NUMBER_ATTEMPTS:
                raise
            logger.warning("Bill number %s already taken, retrying", bill.bill_number)


def create_bill(
    db: Session,
    request: BillCreateRequest,
    cashier: User,
    ip_address: str | None = None,
) -> Bill:
    """Price, settle and store a bill in a single transaction.

    Nothing is written unless the totals and the payment are both accepted.
    """
    customer = request.customer
    payment = request.payment
    now = datetime.now(timezone.utc)

    try:
        cart = price_cart(db, request.items, customer.phone if customer else None, now)
        totals = cart.totals
        settled = reconcile_payment(
            totals.grand_total,
            payment.method,
            cash_tendered=payment.cash_tendered,
            card_amount=payment.card_amount,
            upi_amount=payment.upi_amount,
        )
    except BillingError as exc:
        logger.info("Bill rejected for cashier %s: %s", cashier.username, exc)
        raise

    bill = Bill(
        customer_name=customer.name if customer else None,
        customer_phone=customer.phone if customer else None,
        customer_address=customer.address if customer else None,
        customer_gst_number=customer.gst_number if customer else None,
        **_bill_amounts(totals),
        cash_tendered=_money(payment.cash_tendered or ZERO),
        change_due=_money(settled.change_due),
        payment_method=payment.method,
        payment_reference=payment.reference,
        status=BillStatus.COMPLETED,
        cashier_id=cashier.id,
        notes=request.notes,
        created_at=now,
    )
    for line, discount, result in zip(cart.lines, cart.discounts, totals.items):
        bill.items.append(BillItem(**_line_fields(line, discount, result)))
    for portion in settled.breakdown:
        bill.payments.append(BillPayment(method=portion.method, amount=_money(portion.amount)))

    cash_kept = sum(
        (p.amount for p in settled.breakdown if p.method is PaymentMethod.CASH), ZERO
    )
    shift = shift_service.find_active_shift(db, cashier.id)
    if shift:
        bill.shift_id = shift.id
        shift_service.record_bill(shift, totals.grand_total, cash_kept)

    for line, result in zip(cart.lines, totals.items):
        decrement_stock(line, result.quantity)
    discount_service.record_usage(
        db, _discount_usage(d.id if d else None for d in cart.discounts)
    )
    db.flush()

    _insert_numbered(db, bill, now)

    log_action(
        db,
        action="BILL_CREATED",
        entity="bills",
        ref=bill.bill_number,
        actor_id=cashier.id,
        shift_id=bill.shift_id,
        ip_address=ip_address,
        details={
            "bill_number": bill.bill_number,
            "item_count": len(bill.items),
            "subtotal": totals.subtotal,
            "total_discount": totals.total_discount,
            "total_tax": totals.total_tax,
            "loyalty_discount": totals.loyalty_discount_amount,
            "grand_total": totals.grand_total,
            "payment_method": payment.method,
            "payments": [{"method": p.method, "amount": p.amount} for p in settled.breakdown],
            "change_due": settled.change_due,
        },
    )

    db.commit()
    db.refresh(bill)
    logger.info(
        "Bill %s created by %s: %s items, grand total %s",
        bill.bill_number,
        cashier.username,
        len(bill.items),
        bill.grand_total,
    )
    return bill


# ─── Queries ─────────────────────────────────────────────────────────────────


def list_bills(
    db: Session,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    cashier_id: UUID | None = None,
    status: BillStatus | None = None,
) -> dict:
    query = db.query(Bill)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Bill.bill_number.ilike(pattern),
                Bill.customer_name.ilike(pattern),
                Bill.customer_phone.ilike(pattern),
            )
        )
    if start_date:
        query = query.filter(Bill.created_at >= start_date)
    if end_date:
        query = query.filter(Bill.created_at <= end_date)
    if cashier_id:
        query = query.filter(Bill.cashier_id == cashier_id)
    if status:
        query = query.filter(Bill.status == status)

    total = query.count()
    bills = (
        query.order_by(Bill.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "bills": bills,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "current_page": page,
    }


def get_bill(db: Session, bill_id: UUID) -> Bill:
    bill = db.query(Bill).filter(Bill.id == bill_id).first()
    if not bill:
        raise LookupError("Bill not found")
    return bill


# ─── Cancellation / deletion ─────────────────────────────────────────────────


def cancel_bill(
    db: Session,
    bill_id: UUID,
    admin: User,
    reason: str | None = None,
    ip_address: str | None = None,
) -> Bill:
    """Void a completed bill.

    Stock goes back and discount uses are released. Shift totals are only
    reversed while that shift is still active; a closed shift's cash count is
    final.
    """
    bill = get_bill(db, bill_id)
    if bill.status != BillStatus.COMPLETED:
        raise ValueError(f"Only completed bills can be cancelled (bill is {bill.status.value})")

    for item in bill.items:
        product = db.query(Product).filter(Product.id == item.product_id).first()
        if not product:
            continue
        variant = next((v for v in product.variants if v.id == item.variant_id), None)
        return_stock(
            ResolvedLine(product=product, variant=variant, rate=item.rate, tax_rate=item.tax_rate),
            item.quantity,
        )
    discount_service.release_usage(db, _discount_usage(item.discount_id for item in bill.items))

    if bill.shift_id:
        shift = db.query(Shift).filter(Shift.id == bill.shift_id).first()
        if shift and shift.status == ShiftStatus.ACTIVE:
            cash_kept = sum(
                (p.amount for p in bill.payments if p.method is PaymentMethod.CASH), ZERO
            )
            shift_service.reverse_bill(shift, bill.grand_total, cash_kept)

    bill.status = BillStatus.CANCELLED
    if reason:
        bill.notes = f"{bill.notes}\n{reason}" if bill.notes else reason

    log_action(
        db,
        actor_id=admin.id,
        action="BILL_CANCELLED",
        entity="bills",
        ref=bill.bill_number,
        shift_id=bill.shift_id,
        ip_address=ip_address,
        details={"grand_total": str(bill.grand_total), "reason": reason},
    )
    db.commit()
    db.refresh(bill)
    logger.info("Bill %s cancelled by %s", bill.bill_number, admin.username)
    return bill


def delete_bill(
    db: Session,
    bill_id: UUID,
    admin: User,
    ip_address: str | None = None,
) -> None:
    bill = get_bill(db, bill_id)
    log_action(
        db,
        actor_id=admin.id,
        action="BILL_DELETED",
        entity="bills",
        ref=bill.bill_number,
        ip_address=ip_address,
        details={"grand_total": str(bill.grand_total), "status": bill.status.value},
    )
    db.delete(bill)
    db.commit()
