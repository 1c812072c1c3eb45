from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from supermart.app.models.shift import Shift, ShiftStatus
from supermart.app.models.user import RoleEnum, User
from supermart.app.schemas.shift import ShiftOut
from supermart.app.services.audit import log_action

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def shift_to_out(shift: Shift) -> ShiftOut:
    return ShiftOut(
        id=shift.id,
        cashier_id=shift.cashier_id,
        cashier_name=shift.cashier.full_name if shift.cashier else "unknown",
        status=shift.status,
        started_at=shift.started_at,
        ended_at=shift.ended_at,
        opening_cash=shift.opening_cash,
        closing_cash=shift.closing_cash,
        total_sales=shift.total_sales,
        total_bills=shift.total_bills,
        cash_sales=shift.cash_sales,
        expected_cash=shift.expected_cash,
        discrepancy=shift.discrepancy,
        notes=shift.notes,
    )


def find_active_shift(db: Session, cashier_id: UUID) -> Shift | None:
    return (
        db.query(Shift)
        .filter(Shift.cashier_id == cashier_id, Shift.status == ShiftStatus.ACTIVE)
        .first()
    )


def get_active_shift(db: Session, cashier_id: UUID) -> ShiftOut | None:
    """Return the cashier's currently active shift, or None."""
    shift = find_active_shift(db, cashier_id)
    return shift_to_out(shift) if shift else None


# ─── Running totals (called by the bill service) ─────────────────────────────


def record_bill(shift: Shift, grand_total: Decimal, cash_amount: Decimal) -> None:
    shift.total_sales += grand_total
    shift.total_bills += 1
    shift.cash_sales += cash_amount


def reverse_bill(shift: Shift, grand_total: Decimal, cash_amount: Decimal) -> None:
    shift.total_sales -= grand_total
    shift.total_bills -= 1
    shift.cash_sales -= cash_amount


# ─── Open / close ────────────────────────────────────────────────────────────


def start_shift(
    db: Session,
    cashier: User,
    opening_cash: Decimal,
    ip_address: str | None = None,
) -> ShiftOut:
    if find_active_shift(db, cashier.id):
        raise ValueError("You already have an active shift")

    shift = Shift(
        cashier_id=cashier.id,
        status=ShiftStatus.ACTIVE,
        started_at=datetime.now(timezone.utc),
        opening_cash=opening_cash,
        total_sales=ZERO,
        total_bills=0,
        cash_sales=ZERO,
    )
    db.add(shift)
    db.flush()

    log_action(
        db,
        actor_id=cashier.id,
        action="SHIFT_STARTED",
        entity="shifts",
        ref=str(shift.id),
        shift_id=shift.id,
        ip_address=ip_address,
        details={"opening_cash": str(opening_cash)},
    )
    db.commit()
    db.refresh(shift)
    logger.info("Shift %s started by %s", shift.id, cashier.username)
    return shift_to_out(shift)


def _close(shift: Shift, closing_cash: Decimal, notes: str | None) -> None:
    expected = shift.opening_cash + shift.cash_sales
    shift.status = ShiftStatus.CLOSED
    shift.ended_at = datetime.now(timezone.utc)
    shift.closing_cash = closing_cash
    shift.expected_cash = expected
    shift.discrepancy = closing_cash - expected
    shift.notes = notes


def end_shift(
    db: Session,
    cashier: User,
    closing_cash: Decimal,
    notes: str | None = None,
    ip_address: str | None = None,
) -> ShiftOut:
    """Close the cashier's own active shift and record the cash discrepancy."""
    shift = find_active_shift(db, cashier.id)
    if not shift:
        raise LookupError("No active shift found")

    _close(shift, closing_cash, notes)

    log_action(
        db,
        actor_id=cashier.id,
        action="SHIFT_ENDED",
        entity="shifts",
        ref=str(shift.id),
        shift_id=shift.id,
        ip_address=ip_address,
        details={
            "closing_cash": str(closing_cash),
            "expected_cash": str(shift.expected_cash),
            "discrepancy": str(shift.discrepancy),
            "total_sales": str(shift.total_sales),
            "total_bills": shift.total_bills,
        },
    )
    db.commit()
    db.refresh(shift)
    if shift.discrepancy != ZERO:
        logger.warning(
            "Shift %s closed with cash discrepancy %s", shift.id, shift.discrepancy
        )
    return shift_to_out(shift)


def force_end_shift(
    db: Session,
    shift_id: UUID,
    admin: User,
    closing_cash: Decimal | None = None,
    notes: str | None = None,
    ip_address: str | None = None,
) -> ShiftOut:
    """Admin override: close any active shift.

    Closing cash defaults to the expected drawer amount.
    """
    shift = db.query(Shift).filter(Shift.id == shift_id).first()
    if not shift:
        raise LookupError("Shift not found")
    if shift.status == ShiftStatus.CLOSED:
        raise ValueError("Shift is already closed")

    if closing_cash is None:
        closing_cash = shift.opening_cash + shift.cash_sales
    _close(shift, closing_cash, notes or f"Force ended by admin: {admin.full_name}")

    log_action(
        db,
        actor_id=admin.id,
        action="SHIFT_FORCE_ENDED",
        entity="shifts",
        ref=str(shift.id),
        shift_id=shift.id,
        ip_address=ip_address,
        details={
            "cashier_id": str(shift.cashier_id),
            "closing_cash": str(closing_cash),
            "discrepancy": str(shift.discrepancy),
        },
    )
    db.commit()
    db.refresh(shift)
    return shift_to_out(shift)


# ─── Listing ─────────────────────────────────────────────────────────────────


def list_shifts(
    db: Session,
    user: User,
    page: int = 1,
    limit: int = 20,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    """Shift history, most recent first. Cashiers only see their own."""
    query = db.query(Shift)
    if user.role != RoleEnum.ADMIN:
        query = query.filter(Shift.cashier_id == user.id)
    if start_date:
        query = query.filter(Shift.started_at >= start_date)
    if end_date:
        query = query.filter(Shift.started_at <= end_date)

    total = query.count()
    shifts = (
        query.order_by(Shift.started_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "shifts": [shift_to_out(s) for s in shifts],
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "current_page": page,
    }


def list_active_shifts(db: Session) -> list[ShiftOut]:
    shifts = (
        db.query(Shift)
        .filter(Shift.status == ShiftStatus.ACTIVE)
        .order_by(Shift.started_at)
        .all()
    )
    return [shift_to_out(s) for s in shifts]
