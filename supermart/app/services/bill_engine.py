"""Bill total computation.

Pure arithmetic over a shopping cart: per-line discount and tax, bill-level
aggregation with the loyalty discount and final rounding, and reconciliation of
the collected payment against the grand total.

Nothing here touches the database or the settings. Rates, tax rates, discount
choices and loyalty eligibility are resolved by the caller and passed in, so
the bill preview and the stored bill run through exactly the same code.

Amounts stay at full ``Decimal`` precision until the grand total is rounded to
whole currency units (ROUND_HALF_UP, i.e. half away from zero).
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from supermart.app.core.errors import (
    EmptyCart,
    InsufficientPayment,
    InvalidLineItem,
    PaymentMismatch,
)

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
WHOLE_UNIT = Decimal("1")
DEFAULT_LOYALTY_PERCENT = Decimal("2")


class DiscountKind(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    MIXED = "mixed"


def to_decimal(value: Number) -> Decimal:
    """Convert *value* to Decimal, going through ``str`` so floats keep their printed value."""
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_currency(amount: Decimal) -> Decimal:
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


# ─── Types ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DiscountSpec:
    kind: DiscountKind
    value: Decimal


@dataclass(frozen=True)
class LineItemInput:
    quantity: Decimal
    rate: Decimal
    tax_rate: Decimal = ZERO
    discount: DiscountSpec | None = None


@dataclass(frozen=True)
class LineItemResult:
    quantity: Decimal
    rate: Decimal
    tax_rate: Decimal
    discount: DiscountSpec | None
    base_amount: Decimal
    discount_amount: Decimal
    discounted_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class BillTotals:
    items: tuple[LineItemResult, ...]
    subtotal: Decimal
    item_discount_total: Decimal
    total_discount: Decimal
    total_tax: Decimal
    loyalty_discount_amount: Decimal
    pre_round_grand_total: Decimal
    round_off: Decimal
    grand_total: Decimal


@dataclass(frozen=True)
class PaymentPortion:
    method: PaymentMethod
    amount: Decimal


@dataclass(frozen=True)
class PaymentResult:
    change_due: Decimal
    shortfall: Decimal
    breakdown: tuple[PaymentPortion, ...]


# ─── Builders ────────────────────────────────────────────────────────────────


def make_discount(kind: str | DiscountKind, value: Number) -> DiscountSpec:
    try:
        resolved = DiscountKind(kind)
    except ValueError:
        raise InvalidLineItem(f"Unknown discount kind: {kind!r}") from None
    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise InvalidLineItem(str(exc)) from None
    return DiscountSpec(kind=resolved, value=amount)


def make_line_item(
    quantity: Number,
    rate: Number,
    tax_rate: Number = 0,
    discount: DiscountSpec | None = None,
) -> LineItemInput:
    """Build a ``LineItemInput`` from loosely typed numbers."""
    try:
        return LineItemInput(
            quantity=to_decimal(quantity),
            rate=to_decimal(rate),
            tax_rate=to_decimal(tax_rate),
            discount=discount,
        )
    except ValueError as exc:
        raise InvalidLineItem(str(exc)) from None


# ─── Line items ──────────────────────────────────────────────────────────────


def _normalize_discount(discount: DiscountSpec | None) -> DiscountSpec | None:
    if discount is None:
        return None
    checked = make_discount(discount.kind, discount.value)
    if checked.value < ZERO:
        raise InvalidLineItem("Discount value cannot be negative")
    if checked.kind is DiscountKind.PERCENTAGE and checked.value > HUNDRED:
        raise InvalidLineItem("Percentage discount cannot exceed 100")
    return checked


def _normalize_line(item: LineItemInput) -> LineItemInput:
    line = make_line_item(item.quantity, item.rate, item.tax_rate, _normalize_discount(item.discount))
    if line.quantity <= ZERO:
        raise InvalidLineItem("Quantity must be greater than zero")
    if line.rate < ZERO:
        raise InvalidLineItem("Rate cannot be negative")
    if line.tax_rate < ZERO:
        raise InvalidLineItem("Tax rate cannot be negative")
    return line


def line_discount_amount(
    discount: DiscountSpec | None, quantity: Decimal, base_amount: Decimal
) -> Decimal:
    """Discount for one line; never more than the line's base amount."""
    if discount is None:
        return ZERO
    if discount.kind is DiscountKind.PERCENTAGE:
        return base_amount * discount.value / HUNDRED
    # Fixed discounts are per unit
    return min(discount.value * quantity, base_amount)


def compute_line_item(item: LineItemInput) -> LineItemResult:
    line = _normalize_line(item)

    base_amount = line.quantity * line.rate
    discount_amount = line_discount_amount(line.discount, line.quantity, base_amount)
    discounted_amount = base_amount - discount_amount
    # Tax is charged on the post-discount amount
    tax_amount = discounted_amount * line.tax_rate / HUNDRED

    return LineItemResult(
        quantity=line.quantity,
        rate=line.rate,
        tax_rate=line.tax_rate,
        discount=line.discount,
        base_amount=base_amount,
        discount_amount=discount_amount,
        discounted_amount=discounted_amount,
        tax_amount=tax_amount,
        total_amount=discounted_amount + tax_amount,
    )


# ─── Bill totals ─────────────────────────────────────────────────────────────


def compute_bill_totals(
    items: Iterable[LineItemInput],
    loyalty_eligible: bool = False,
    loyalty_percent: Number = DEFAULT_LOYALTY_PERCENT,
) -> BillTotals:
    """Aggregate a cart into bill totals.

    The loyalty discount is a flat percentage of ``subtotal + total_tax``,
    rounded to whole units and taken after line discounts and tax are known.
    """
    results = tuple(compute_line_item(item) for item in items)
    if not results:
        raise EmptyCart()

    subtotal = sum((r.discounted_amount for r in results), ZERO)
    total_tax = sum((r.tax_amount for r in results), ZERO)
    item_discount_total = sum((r.discount_amount for r in results), ZERO)

    loyalty_discount_amount = ZERO
    if loyalty_eligible:
        percent = to_decimal(loyalty_percent)
        loyalty_discount_amount = round_currency((subtotal + total_tax) * percent / HUNDRED)

    pre_round_grand_total = subtotal + total_tax - loyalty_discount_amount
    grand_total = round_currency(pre_round_grand_total)

    return BillTotals(
        items=results,
        subtotal=subtotal,
        item_discount_total=item_discount_total,
        total_discount=item_discount_total + loyalty_discount_amount,
        total_tax=total_tax,
        loyalty_discount_amount=loyalty_discount_amount,
        pre_round_grand_total=pre_round_grand_total,
        round_off=grand_total - pre_round_grand_total,
        grand_total=grand_total,
    )


# ─── Payment ─────────────────────────────────────────────────────────────────


def reconcile_payment(
    grand_total: Number,
    method: str | PaymentMethod,
    cash_tendered: Number | None = None,
    card_amount: Number | None = None,
    upi_amount: Number | None = None,
) -> PaymentResult:
    """Check the collected payment against *grand_total* and work out change.

    Card and UPI amounts are gateway-verified and kept exactly; only cash
    produces change.
    """
    try:
        resolved = PaymentMethod(method)
    except ValueError:
        raise PaymentMismatch(f"Unsupported payment method: {method!r}") from None

    total = to_decimal(grand_total)
    cash = to_decimal(cash_tendered) if cash_tendered is not None else ZERO
    card = to_decimal(card_amount) if card_amount is not None else ZERO
    upi = to_decimal(upi_amount) if upi_amount is not None else ZERO
    if cash < ZERO or card < ZERO or upi < ZERO:
        raise PaymentMismatch("Payment amounts cannot be negative")

    if resolved is PaymentMethod.CASH:
        if cash < total:
            raise InsufficientPayment(
                f"Cash tendered ({cash}) is less than the total amount ({total})",
                shortfall=total - cash,
            )
        return PaymentResult(
            change_due=cash - total,
            shortfall=ZERO,
            breakdown=(PaymentPortion(PaymentMethod.CASH, total),),
        )

    if resolved in (PaymentMethod.CARD, PaymentMethod.UPI):
        verified = card_amount if resolved is PaymentMethod.CARD else upi_amount
        if verified is None or to_decimal(verified) != total:
            raise PaymentMismatch(
                f"Verified {resolved.value} amount ({verified}) does not match "
                f"the bill total ({total})"
            )
        return PaymentResult(
            change_due=ZERO,
            shortfall=ZERO,
            breakdown=(PaymentPortion(resolved, total),),
        )

    # Mixed: card/UPI are applied first, cash covers the rest
    non_cash = card + upi
    if non_cash > total:
        raise PaymentMismatch(
            f"Card and UPI amounts ({non_cash}) exceed the bill total ({total})"
        )
    collected = cash + non_cash
    if collected < total:
        raise InsufficientPayment(
            f"Total payment ({collected}) is less than the grand total ({total})",
            shortfall=total - collected,
        )

    cash_kept = total - non_cash
    breakdown = tuple(
        PaymentPortion(m, amount)
        for m, amount in (
            (PaymentMethod.CASH, cash_kept),
            (PaymentMethod.CARD, card),
            (PaymentMethod.UPI, upi),
        )
        if amount > ZERO
    )
    return PaymentResult(change_due=collected - total, shortfall=ZERO, breakdown=breakdown)
