"""Customer loyalty: counts completed purchases per phone number.

The threshold comes from settings; the discount arithmetic itself lives in
the bill engine, which only receives the resulting yes/no.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from supermart.app.core.config import settings
from supermart.app.models.bill import Bill, BillStatus


@dataclass(frozen=True)
class LoyaltyStatus:
    phone: str
    purchase_count: int
    is_eligible: bool
    purchases_remaining: int


def purchase_count(db: Session, phone: str) -> int:
    """Number of completed bills recorded against *phone*."""
    return (
        db.query(Bill)
        .filter(Bill.customer_phone == phone, Bill.status == BillStatus.COMPLETED)
        .count()
    )


def loyalty_status(
    db: Session, phone: str | None, threshold: int | None = None
) -> LoyaltyStatus | None:
    """Eligibility of the customer's *next* purchase.

    The purchase being rung up is number ``purchase_count + 1``; it earns the
    discount once that number reaches the threshold.
    """
    phone = (phone or "").strip()
    if not phone:
        return None
    if threshold is None:
        threshold = settings.LOYALTY_PURCHASE_THRESHOLD

    count = purchase_count(db, phone)
    remaining = max(threshold - (count + 1), 0)
    return LoyaltyStatus(
        phone=phone,
        purchase_count=count,
        is_eligible=remaining == 0,
        purchases_remaining=remaining,
    )
